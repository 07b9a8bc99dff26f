# topic_bridge/render.py
"""Render models derived from a decision-service response."""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

from loguru import logger
from pydantic import ValidationError

from topic_bridge.contracts import (
    Assumption,
    DecisionOutput,
    DecisionResponse,
    FitMisfitModel,
    Outcome,
    OwnershipConditions,
    ResponseContractError,
    ResponseObservability,
    TopicRecord,
    TravelerSegment,
)

FIT_LIST_FLOOR = 2
FIT_LIST_CEILING = 4
RISK_MISFIT_LIMIT = 2

RIGHT_FOR_FILLERS: tuple[str, ...] = (
    "Travelers with flexibility in their requirements",
    "Travelers comfortable with some uncertainty",
)
NOT_IDEAL_FOR_FILLERS: tuple[str, ...] = (
    "Those with rigid constraints",
    "Those who need guaranteed outcomes",
)

DEFAULT_PRIMARY_CONDITION = "conditions favor this option"
DEFAULT_INVALIDATING_CONDITION = "your constraints or priorities change significantly"

# segment -> (right_for, not_ideal_for)
SEGMENT_FIT: tuple[tuple[TravelerSegment, str | None, str | None], ...] = (
    (TravelerSegment.FIRST_TIME, "First-time safari visitors", None),
    (TravelerSegment.REPEAT, "Returning safari travelers seeking variety", None),
    (TravelerSegment.BUDGET_CONSCIOUS, "Travelers prioritizing value", "Those requiring luxury accommodations"),
    (TravelerSegment.FAMILIES, "Families with older children", "Travelers seeking adult-only experiences"),
)

OUTCOME_RIGHT_FOR: dict[Outcome, str] = {
    Outcome.BOOK: "Those ready to commit with current constraints",
}
OUTCOME_NOT_IDEAL_FOR: dict[Outcome, str] = {
    Outcome.WAIT: "Travelers with fixed, immovable dates",
    Outcome.SWITCH: "Those set on this specific option",
}

OBSERVABILITY_HEADERS: dict[str, str] = {
    "x-decision-id": "decision_id",
    "x-snapshot-status": "snapshot_status",
    "x-lock-status": "lock_status",
    "x-ai-used": "ai_used",
}


def parse_decision_response(payload: Mapping[str, Any]) -> DecisionResponse:
    try:
        return DecisionResponse.model_validate(payload)
    except ValidationError as exc:
        raise ResponseContractError(f"decision response does not match contract: {exc}") from exc


def is_decision_success(response: DecisionResponse) -> bool:
    return response.output.type == "decision" and response.decision is not None


def is_decision_refusal(response: DecisionResponse) -> bool:
    return response.output.type == "refusal" and response.refusal is not None


def _pad(items: list[str], fillers: tuple[str, ...]) -> None:
    for filler in fillers:
        if len(items) >= FIT_LIST_FLOOR:
            return
        if filler not in items:
            items.append(filler)


def derive_fit_misfit(record: TopicRecord, outcome: Outcome | str) -> FitMisfitModel:
    """
    Who the outcome suits and who it does not.

    Segment and outcome rules contribute first, then the record's first two
    risks. Each list is padded to two entries with generic fillers and
    truncated to four.
    """
    chosen = Outcome(outcome)
    segments = set(record.traveler_segments)
    right_for: list[str] = []
    not_ideal_for: list[str] = []

    for segment, fit, misfit in SEGMENT_FIT:
        if segment not in segments:
            continue
        if fit:
            right_for.append(fit)
        if misfit:
            not_ideal_for.append(misfit)

    if chosen in OUTCOME_RIGHT_FOR:
        right_for.append(OUTCOME_RIGHT_FOR[chosen])
    elif chosen in OUTCOME_NOT_IDEAL_FOR:
        not_ideal_for.append(OUTCOME_NOT_IDEAL_FOR[chosen])

    for risk in record.primary_risks[:RISK_MISFIT_LIMIT]:
        not_ideal_for.append(f"Those who cannot accept: {risk.lower()}")

    _pad(right_for, RIGHT_FOR_FILLERS)
    _pad(not_ideal_for, NOT_IDEAL_FOR_FILLERS)

    return FitMisfitModel(
        right_for=tuple(right_for[:FIT_LIST_CEILING]),
        not_ideal_for=tuple(not_ideal_for[:FIT_LIST_CEILING]),
    )


def extract_primary_condition(assumptions: Sequence[Assumption], change_conditions: Sequence[str]) -> str:
    if assumptions and assumptions[0].text:
        return assumptions[0].text
    if change_conditions and change_conditions[0]:
        return change_conditions[0]
    return DEFAULT_PRIMARY_CONDITION


def extract_invalidating_condition(change_conditions: Sequence[str]) -> str:
    if change_conditions and change_conditions[0]:
        return change_conditions[0]
    return DEFAULT_INVALIDATING_CONDITION


def derive_ownership_conditions(decision: DecisionOutput) -> OwnershipConditions:
    return OwnershipConditions(
        primary=extract_primary_condition(decision.assumptions, decision.change_conditions),
        invalidating=extract_invalidating_condition(decision.change_conditions),
    )


def _parse_flag(raw: str) -> bool | None:
    value = raw.strip().lower()
    if value in ("true", "1", "yes"):
        return True
    if value in ("false", "0", "no"):
        return False
    return None


def read_response_observability(headers: Mapping[str, str]) -> ResponseObservability:
    """Pick the pass-through observability headers, matching names case-insensitively."""
    values: dict[str, Any] = {}
    for name, raw in headers.items():
        field = OBSERVABILITY_HEADERS.get(name.lower())
        if field is None or raw is None:
            continue
        values[field] = _parse_flag(raw) if field == "ai_used" else raw

    observed = ResponseObservability(**values)
    if observed.decision_id:
        logger.debug(
            f"decision {observed.decision_id}: snapshot={observed.snapshot_status} "
            f"lock={observed.lock_status} ai_used={observed.ai_used}"
        )
    return observed
