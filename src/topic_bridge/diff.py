# topic_bridge/diff.py
"""Structural difference between two decision results, for side-by-side comparison."""
from __future__ import annotations

from collections.abc import Iterable

from topic_bridge.contracts import (
    DecisionOutput,
    DecisionResponse,
    DiffModel,
    DiffStatus,
    SetDiff,
    TopicRecord,
    ValueDiff,
)
from topic_bridge.render import derive_fit_misfit

MAX_CONFIDENCE_DIGITS = 6


def _unique(items: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(items))


def diff_string_sets(a: Iterable[str], b: Iterable[str]) -> SetDiff:
    """
    Exact string-set difference. Order follows first appearance in each input;
    duplicates collapse.
    """
    left = _unique(a)
    right = _unique(b)
    right_set = set(right)
    left_set = set(left)
    return SetDiff(
        only_in_a=tuple(x for x in left if x not in right_set),
        only_in_b=tuple(x for x in right if x not in left_set),
    )


def format_confidence(confidence: float, digits: int = 0) -> str:
    return f"{confidence * 100:.{digits}f}%"


def _distinct_confidences(a: float, b: float) -> tuple[str, str]:
    """Whole percentages, with decimals added until unequal values render differently."""
    for digits in range(MAX_CONFIDENCE_DIGITS + 1):
        left, right = format_confidence(a, digits), format_confidence(b, digits)
        if left != right:
            return left, right
    return f"{a * 100!r}%", f"{b * 100!r}%"


def _skipped(labels: tuple[str, str], reason: str) -> DiffModel:
    return DiffModel(status=DiffStatus.SKIPPED, labels=labels, has_differences=False, skip_reason=reason)


def compute_diff(
    response_a: DecisionResponse,
    response_b: DecisionResponse,
    record_a: TopicRecord,
    record_b: TopicRecord,
    *,
    labels: tuple[str, str] = ("A", "B"),
) -> DiffModel:
    """
    Compare two decisions. A refusal on either side yields ``status=skipped``,
    which callers render differently from a compared pair with no differences.
    """
    decision_a = response_a.decision
    decision_b = response_b.decision
    if decision_a is None or decision_b is None:
        refused = [label for label, d in zip(labels, (decision_a, decision_b)) if d is None]
        return _skipped(labels, f"no decision to compare for {', '.join(refused)}")

    return _compare(decision_a, decision_b, record_a, record_b, labels=labels)


def _compare(
    a: DecisionOutput,
    b: DecisionOutput,
    record_a: TopicRecord,
    record_b: TopicRecord,
    *,
    labels: tuple[str, str],
) -> DiffModel:
    outcome = None
    if a.outcome != b.outcome:
        outcome = ValueDiff(label="Outcome", value_a=a.outcome.value, value_b=b.outcome.value)

    confidence = None
    if a.confidence != b.confidence:
        value_a, value_b = _distinct_confidences(a.confidence, b.confidence)
        confidence = ValueDiff(label="Confidence", value_a=value_a, value_b=value_b)

    fit_a = derive_fit_misfit(record_a, a.outcome)
    fit_b = derive_fit_misfit(record_b, b.outcome)

    sets = {
        "gains": diff_string_sets(a.tradeoffs.gains, b.tradeoffs.gains),
        "losses": diff_string_sets(a.tradeoffs.losses, b.tradeoffs.losses),
        "assumptions": diff_string_sets((x.text for x in a.assumptions), (x.text for x in b.assumptions)),
        "change_conditions": diff_string_sets(a.change_conditions, b.change_conditions),
        "fit": diff_string_sets(fit_a.right_for, fit_b.right_for),
        "misfit": diff_string_sets(fit_a.not_ideal_for, fit_b.not_ideal_for),
    }

    has_differences = (
        outcome is not None
        or confidence is not None
        or any(not d.is_empty for d in sets.values())
    )

    return DiffModel(
        status=DiffStatus.COMPARED,
        labels=labels,
        has_differences=has_differences,
        outcome=outcome,
        confidence=confidence,
        **sets,
    )
