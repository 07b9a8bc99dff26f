# topic_bridge/envelope.py
"""
Request contract builder.

`build_request_contract` maps a compiled `TopicRecord` to the body sent to the
decision-evaluation service. It performs no I/O; transport, timeouts and
retries belong to the caller.

The preflight helpers merge traveler-supplied values (keyed by dotted contract
path, as declared on each `RuntimeInput`) into a built contract.
"""
from __future__ import annotations

import copy
import json
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from topic_bridge.contracts import (
    DateContext,
    Facts,
    Policy,
    RequestContract,
    RequestContractError,
    RequestSection,
    RuntimeInput,
    TopicRecord,
    Tracking,
    TravelerSegment,
    UserContext,
)
from topic_bridge.settings import BridgeSettings, get_settings

MUST_REFUSE_IF: tuple[str, ...] = (
    "guarantee_requested",
    "inputs_conflict_unbounded",
    "missing_material_inputs",
)
FORBIDDEN_PHRASES: tuple[str, ...] = ("unforgettable", "magical", "once-in-a-lifetime")

THIN_EDGE_SCOPE = "thin_edge_scope_only=true"

_NUMBER_RE = re.compile(r"^-?\d+(\.\d+)?$")


def derive_budget_band(segments: Iterable[TravelerSegment]) -> str:
    segs = set(segments)
    if TravelerSegment.BUDGET_CONSCIOUS in segs:
        return "budget"
    if TravelerSegment.LUXURY in segs:
        return "premium"
    return "fair_value"


def derive_date_context(record: TopicRecord, *, year: int) -> DateContext:
    month = record.time_context.month if record.time_context is not None else None
    if month:
        return DateContext(type="month_year", month=month, year=year)
    return DateContext(type="flexible")


def build_request_contract(
    record: TopicRecord,
    *,
    settings: BridgeSettings | None = None,
    session_id: str | None = None,
    traveler_id: str | None = None,
    lead_id: str | None = None,
) -> RequestContract:
    cfg = settings or get_settings()
    segments = record.traveler_segments

    return RequestContract(
        tracking=Tracking(
            session_id=session_id or f"{cfg.session_prefix}{record.topic_id}",
            traveler_id=traveler_id,
            lead_id=lead_id,
        ),
        user_context=UserContext(
            traveler_type=segments[0].value if segments else TravelerSegment.FIRST_TIME.value,
            budget_band=derive_budget_band(segments),
            dates=derive_date_context(record, year=cfg.default_travel_year),
        ),
        request=RequestSection(
            question=record.question,
            scope=THIN_EDGE_SCOPE,
            destinations_considered=list(record.destinations),
        ),
        facts=Facts(
            known_constraints=list(record.primary_risks),
            known_tradeoffs=list(record.key_tradeoffs),
        ),
        policy=Policy(
            must_refuse_if=list(MUST_REFUSE_IF),
            forbidden_phrases=list(FORBIDDEN_PHRASES),
        ),
    )


# ------------------------------------------------------------------------------
# Preflight overrides
# ------------------------------------------------------------------------------


def parse_input_value(value: str) -> Any:
    """Type-sniff a raw form value: JSON arrays/objects, booleans, plain decimals, else the trimmed string."""
    trimmed = value.strip()
    if trimmed == "":
        return trimmed

    if trimmed.startswith(("[", "{")):
        try:
            return json.loads(trimmed)
        except json.JSONDecodeError:
            return trimmed

    if trimmed == "true":
        return True
    if trimmed == "false":
        return False

    if _NUMBER_RE.match(trimmed):
        return float(trimmed) if "." in trimmed else int(trimmed)

    return trimmed


def set_nested_value(obj: dict[str, Any], path: str, value: Any) -> None:
    """Set ``obj[a][b][c] = value`` for ``path="a.b.c"``. Non-dict intermediates are replaced."""
    parts = path.split(".")
    current = obj
    for part in parts[:-1]:
        nxt = current.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            current[part] = nxt
        current = nxt
    current[parts[-1]] = value


def deep_merge(target: Mapping[str, Any], source: Mapping[str, Any]) -> dict[str, Any]:
    """Return a new dict: nested mappings merge recursively; lists and scalars from ``source`` replace."""
    result = dict(target)
    for key, source_value in source.items():
        target_value = result.get(key)
        if isinstance(source_value, Mapping) and isinstance(target_value, Mapping):
            result[key] = deep_merge(target_value, source_value)
        else:
            result[key] = copy.deepcopy(source_value)
    return result


def build_overrides_from_inputs(inputs: Mapping[str, str | None]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for key, raw in inputs.items():
        if raw is None or raw == "":
            continue
        set_nested_value(overrides, key, parse_input_value(raw))
    return overrides


def apply_overrides(contract: RequestContract, overrides: Mapping[str, Any]) -> RequestContract:
    """Merge overrides into a copy of ``contract``; the input contract is left untouched."""
    merged = deep_merge(contract.model_dump(mode="python"), overrides)
    try:
        return RequestContract.model_validate(merged)
    except ValidationError as exc:
        raise RequestContractError(f"overrides produce an invalid request contract: {exc}") from exc


@dataclass(frozen=True)
class PreflightValidation:
    valid: bool
    missing_labels: tuple[str, ...] = ()


def validate_preflight_inputs(
    inputs: Mapping[str, str | None],
    required: Iterable[RuntimeInput],
) -> PreflightValidation:
    missing = tuple(
        item.label for item in required if not (inputs.get(item.key) or "").strip()
    )
    return PreflightValidation(valid=not missing, missing_labels=missing)
