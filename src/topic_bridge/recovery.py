# topic_bridge/recovery.py
"""
Refusal recovery: turn a refusal into a short list of inputs the traveler can
supply, plus a literal JSON snippet showing where each value goes.

The missing-input list always holds between 3 and 7 entries so the recovery
panel is renderable for every topic, including ones with no declared inputs.
"""
from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from typing import Any

from loguru import logger

from topic_bridge.contracts import MissingInput, RecoveryModel, RefusalCode, RefusalOutput, TopicRecord
from topic_bridge.envelope import set_nested_value

MIN_MISSING_INPUTS = 3
MAX_MISSING_INPUTS = 7

MONTH = "user_context.dates.month"
YEAR = "user_context.dates.year"
TRAVELER_TYPE = "user_context.traveler_type"
BUDGET_BAND = "user_context.budget_band"
GROUP_SIZE = "user_context.group_size"
RISK_TOLERANCE = "user_context.risk_tolerance"
DESTINATIONS = "request.destinations_considered"
COMFORT_LEVEL = "request.constraints.comfort_level"

_MATERIAL = (MONTH, TRAVELER_TYPE, BUDGET_BAND)
_CONFLICT = (BUDGET_BAND, COMFORT_LEVEL)
_DATES = (MONTH, YEAR)

REASON_TO_FIELDS: dict[str, tuple[str, ...]] = {
    "missing_material_inputs": _MATERIAL,
    "Missing material inputs": _MATERIAL,
    "inputs_conflict_unbounded": _CONFLICT,
    "Conflicting inputs": _CONFLICT,
    "guarantee_requested": (RISK_TOLERANCE,),
    "Missing travel dates": _DATES,
    "missing_dates": _DATES,
    "Missing destination": (DESTINATIONS,),
    "missing_destination": (DESTINATIONS,),
    "Missing group size": (GROUP_SIZE,),
    "missing_group_size": (GROUP_SIZE,),
    "Missing budget information": (BUDGET_BAND,),
    "missing_budget": (BUDGET_BAND,),
}

REASON_FOR_CODE: dict[RefusalCode, str] = {
    RefusalCode.MISSING_INPUTS: "missing_material_inputs",
    RefusalCode.CONFLICTING_INPUTS: "inputs_conflict_unbounded",
    RefusalCode.GUARANTEE_REQUESTED: "guarantee_requested",
}

DEFAULT_EXAMPLES: dict[str, str] = {
    MONTH: "July",
    YEAR: "2026",
    TRAVELER_TYPE: "first_time",
    BUDGET_BAND: "fair_value",
    GROUP_SIZE: "2",
    RISK_TOLERANCE: "medium",
    "user_context.pace_preference": "balanced",
    DESTINATIONS: '["Tanzania"]',
    COMFORT_LEVEL: "standard",
    "request.constraints.crowd_tolerance": "medium",
}

DEFAULT_LABELS: dict[str, str] = {
    MONTH: "Travel month",
    YEAR: "Travel year",
    TRAVELER_TYPE: "Traveler type",
    BUDGET_BAND: "Budget tier",
    GROUP_SIZE: "Group size",
    RISK_TOLERANCE: "Risk tolerance",
    "user_context.pace_preference": "Pace preference",
    DESTINATIONS: "Destinations",
    COMFORT_LEVEL: "Comfort level",
    "request.constraints.crowd_tolerance": "Crowd tolerance",
}

COMMON_FALLBACK_KEYS: tuple[str, ...] = (MONTH, BUDGET_BAND, GROUP_SIZE)

_KNOWN_BY_LOWER = {reason.lower(): reason for reason in REASON_TO_FIELDS}
# substring matching prefers the longest known reason
_BY_LENGTH = sorted(REASON_TO_FIELDS, key=len, reverse=True)


def _match_reason(reason: str | None) -> str | None:
    if not reason:
        return None
    if reason in REASON_TO_FIELDS:
        return reason
    lowered = reason.strip().lower()
    if lowered in _KNOWN_BY_LOWER:
        return _KNOWN_BY_LOWER[lowered]
    for known in _BY_LENGTH:
        if known.lower() in lowered:
            return known
    return None


def fields_for_reason(reason: str | None) -> list[str] | None:
    known = _match_reason(reason)
    if known is None:
        return None
    return list(REASON_TO_FIELDS[known])


def is_known_refusal_reason(reason: str | None) -> bool:
    return _match_reason(reason) is not None


def _describe(key: str, record: TopicRecord) -> MissingInput:
    for item in (*record.required_inputs, *record.optional_inputs):
        if item.key == key:
            return MissingInput(key=key, label=item.label, example=item.example)
    label = DEFAULT_LABELS.get(key) or key.rsplit(".", 1)[-1] or key
    return MissingInput(key=key, label=label, example=DEFAULT_EXAMPLES.get(key, "unknown"))


def _extend_unique(target: list[MissingInput], candidates: Iterable[MissingInput]) -> None:
    seen = {m.key for m in target}
    for candidate in candidates:
        if len(target) >= MIN_MISSING_INPUTS:
            return
        if candidate.key in seen:
            continue
        target.append(candidate)
        seen.add(candidate.key)


def get_missing_inputs(reason: str | None, record: TopicRecord) -> list[MissingInput]:
    """
    Inputs the traveler should supply after a refusal.

    A recognized reason selects its mapped keys; otherwise the record's required
    inputs are used in declaration order. Short lists are padded from the
    optional inputs and then from month, budget band and group size.
    """
    fields = fields_for_reason(reason)
    if fields:
        selected = [_describe(key, record) for key in fields]
    else:
        selected = [MissingInput(key=i.key, label=i.label, example=i.example) for i in record.required_inputs]

    if len(selected) < MIN_MISSING_INPUTS:
        _extend_unique(
            selected,
            (MissingInput(key=i.key, label=i.label, example=i.example) for i in record.optional_inputs),
        )
        _extend_unique(selected, (_describe(key, record) for key in COMMON_FALLBACK_KEYS))

    return selected[:MAX_MISSING_INPUTS]


def _parse_example(example: str) -> Any:
    def _reject_constant(name: str) -> Any:
        raise ValueError(name)

    try:
        return json.loads(example, parse_constant=_reject_constant)
    except ValueError:
        return example


def build_example_snippet(inputs: Sequence[MissingInput]) -> str:
    """Nested JSON object holding each input's example at its dotted key path."""
    snippet: dict[str, Any] = {}
    for item in inputs:
        set_nested_value(snippet, item.key, _parse_example(item.example))
    return json.dumps(snippet, indent=2, ensure_ascii=False)


def build_recovery_model(refusal: RefusalOutput, record: TopicRecord) -> RecoveryModel:
    reason: str | None = refusal.reason
    if not is_known_refusal_reason(reason) and refusal.code in REASON_FOR_CODE:
        reason = REASON_FOR_CODE[refusal.code]

    known = is_known_refusal_reason(reason)
    if not known:
        logger.debug(f"[{record.topic_id}] unrecognized refusal reason {refusal.reason!r}; using required inputs")

    missing = get_missing_inputs(reason, record)
    return RecoveryModel(
        reason=refusal.reason,
        known_reason=known,
        missing_inputs=tuple(missing),
        example_snippet=build_example_snippet(missing),
        safe_next_step=refusal.safe_next_step,
    )
