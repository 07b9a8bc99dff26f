from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Protocol, Sequence

from topic_bridge.contracts import RuntimeInput, TopicDefinition, TopicRecord
from topic_bridge.stable_ids import content_digest

REQUIRED_INPUTS_MIN = 2
REQUIRED_INPUTS_MAX = 4
OPTIONAL_INPUTS_MAX = 4

_INPUT_FIELDS = ("key", "label", "description", "example")


class InvariantId(str, Enum):
    REQUIRED_INPUT_COUNT = "required_input_count.v1"
    OPTIONAL_INPUT_COUNT = "optional_input_count.v1"
    INPUT_FIELDS_NON_EMPTY = "input_fields_non_empty.v1"
    INPUT_KEYS_UNIQUE = "input_keys_unique.v1"
    DEFAULT_OUTCOME_ELIGIBLE = "default_outcome_eligible.v1"
    CONFIDENCE_RANGE_BOUNDED = "confidence_range_bounded.v1"
    SLUG_UNIQUE = "slug_unique.v1"
    RECORD_PRESENT = "record_present.v1"
    RECORD_DIGEST_FRESH = "record_digest_fresh.v1"


class Category(str, Enum):
    COVERAGE = "coverage"
    INTEGRITY = "integrity"
    INPUT = "input"


class Flow(str, Enum):
    CONTINUE = "continue"
    STOP = "stop"


class Validity(str, Enum):
    VALID = "valid"
    DEGRADED = "degraded"
    INVALID = "invalid"


CATEGORY: dict[InvariantId, Category] = {
    InvariantId.REQUIRED_INPUT_COUNT: Category.INPUT,
    InvariantId.OPTIONAL_INPUT_COUNT: Category.INPUT,
    InvariantId.INPUT_FIELDS_NON_EMPTY: Category.INPUT,
    InvariantId.INPUT_KEYS_UNIQUE: Category.INPUT,
    InvariantId.DEFAULT_OUTCOME_ELIGIBLE: Category.INTEGRITY,
    InvariantId.CONFIDENCE_RANGE_BOUNDED: Category.INTEGRITY,
    InvariantId.SLUG_UNIQUE: Category.INTEGRITY,
    InvariantId.RECORD_PRESENT: Category.COVERAGE,
    InvariantId.RECORD_DIGEST_FRESH: Category.COVERAGE,
}


@dataclass(frozen=True)
class InvariantOutcome:
    invariant_id: InvariantId
    passed: bool
    reason: str
    flow: Flow
    validity: Validity
    code: str
    evidence: Sequence[Mapping[str, Any]] = field(default_factory=tuple)
    details: Mapping[str, Any] = field(default_factory=dict)

    @property
    def category(self) -> Category:
        return CATEGORY[self.invariant_id]


class CheckContext(Protocol):
    topic_id: str
    definition: Optional[TopicDefinition]
    record: Optional[TopicRecord]
    slug_owners: Mapping[str, Sequence[str]]
    records_supplied: bool


@dataclass(frozen=True)
class TopicCheckContext:
    topic_id: str
    definition: Optional[TopicDefinition] = None
    record: Optional[TopicRecord] = None
    slug_owners: Mapping[str, Sequence[str]] = field(default_factory=dict)
    records_supplied: bool = True


Checker = Callable[[CheckContext], InvariantOutcome]


def _ok(invariant_id: InvariantId, code: str, details: Optional[Mapping[str, Any]] = None) -> InvariantOutcome:
    detail_map = dict(details or {})
    reason = str(detail_map.get("message") or code)
    return InvariantOutcome(
        invariant_id=invariant_id,
        passed=True,
        reason=reason,
        flow=Flow.CONTINUE,
        validity=Validity.VALID,
        code=code,
        details=detail_map,
    )


def _fail(
    invariant_id: InvariantId,
    code: str,
    reason: str,
    *,
    evidence: Sequence[Mapping[str, Any]] = (),
    validity: Validity = Validity.INVALID,
) -> InvariantOutcome:
    return InvariantOutcome(
        invariant_id=invariant_id,
        passed=False,
        reason=reason,
        flow=Flow.STOP,
        validity=validity,
        code=code,
        evidence=tuple(evidence),
        details={"message": reason},
    )


def check_required_input_count(ctx: CheckContext) -> InvariantOutcome:
    if ctx.definition is None:
        return _ok(InvariantId.REQUIRED_INPUT_COUNT, "no_definition")
    count = len(ctx.definition.required_inputs)
    if REQUIRED_INPUTS_MIN <= count <= REQUIRED_INPUTS_MAX:
        return _ok(InvariantId.REQUIRED_INPUT_COUNT, "required_count_in_range", {"count": count})
    return _fail(
        InvariantId.REQUIRED_INPUT_COUNT,
        "required_count_out_of_range",
        f"Has {count} required inputs (expected {REQUIRED_INPUTS_MIN}-{REQUIRED_INPUTS_MAX})",
        evidence=({"kind": "count", "value": count},),
    )


def check_optional_input_count(ctx: CheckContext) -> InvariantOutcome:
    if ctx.definition is None:
        return _ok(InvariantId.OPTIONAL_INPUT_COUNT, "no_definition")
    count = len(ctx.definition.optional_inputs)
    if count <= OPTIONAL_INPUTS_MAX:
        return _ok(InvariantId.OPTIONAL_INPUT_COUNT, "optional_count_in_range", {"count": count})
    return _fail(
        InvariantId.OPTIONAL_INPUT_COUNT,
        "optional_count_out_of_range",
        f"Has {count} optional inputs (expected 0-{OPTIONAL_INPUTS_MAX})",
        evidence=({"kind": "count", "value": count},),
    )


def _empty_fields(item: RuntimeInput) -> list[str]:
    return [name for name in _INPUT_FIELDS if not str(getattr(item, name)).strip()]


def check_input_fields_non_empty(ctx: CheckContext) -> InvariantOutcome:
    if ctx.definition is None:
        return _ok(InvariantId.INPUT_FIELDS_NON_EMPTY, "no_definition")

    evidence = []
    for index, item in enumerate(ctx.definition.all_inputs):
        empty = _empty_fields(item)
        if empty:
            evidence.append({"kind": "input", "index": index, "key": item.key, "empty_fields": empty})

    if not evidence:
        return _ok(InvariantId.INPUT_FIELDS_NON_EMPTY, "input_fields_complete")
    described = "; ".join(f"input {e['index']} ({e['key'] or '?'}) missing {', '.join(e['empty_fields'])}" for e in evidence)
    return _fail(InvariantId.INPUT_FIELDS_NON_EMPTY, "input_fields_empty", described, evidence=evidence)


def check_input_keys_unique(ctx: CheckContext) -> InvariantOutcome:
    if ctx.definition is None:
        return _ok(InvariantId.INPUT_KEYS_UNIQUE, "no_definition")

    seen: set[str] = set()
    duplicates: list[str] = []
    for item in ctx.definition.all_inputs:
        if item.key in seen and item.key not in duplicates:
            duplicates.append(item.key)
        seen.add(item.key)

    if not duplicates:
        return _ok(InvariantId.INPUT_KEYS_UNIQUE, "input_keys_unique")
    return _fail(
        InvariantId.INPUT_KEYS_UNIQUE,
        "duplicate_input_keys",
        f"Duplicate input keys: {', '.join(duplicates)}",
        evidence=tuple({"kind": "key", "value": key} for key in duplicates),
    )


def check_default_outcome_eligible(ctx: CheckContext) -> InvariantOutcome:
    record = ctx.record
    if record is None:
        return _ok(InvariantId.DEFAULT_OUTCOME_ELIGIBLE, "no_record")
    if record.default_outcome in record.eligible_outcomes:
        return _ok(InvariantId.DEFAULT_OUTCOME_ELIGIBLE, "default_outcome_eligible")
    return _fail(
        InvariantId.DEFAULT_OUTCOME_ELIGIBLE,
        "default_outcome_ineligible",
        f"Default outcome {record.default_outcome.value!r} is not eligible",
        evidence=({"kind": "eligible", "value": [o.value for o in record.eligible_outcomes]},),
    )


def check_confidence_range_bounded(ctx: CheckContext) -> InvariantOutcome:
    record = ctx.record
    if record is None:
        return _ok(InvariantId.CONFIDENCE_RANGE_BOUNDED, "no_record")
    low, high = record.confidence_range
    if 0.0 <= low <= high <= 1.0:
        return _ok(InvariantId.CONFIDENCE_RANGE_BOUNDED, "confidence_range_bounded")
    return _fail(
        InvariantId.CONFIDENCE_RANGE_BOUNDED,
        "confidence_range_invalid",
        f"Confidence range {list(record.confidence_range)} is not within [0, 1] with min <= max",
    )


def check_slug_unique(ctx: CheckContext) -> InvariantOutcome:
    record = ctx.record
    if record is None:
        return _ok(InvariantId.SLUG_UNIQUE, "no_record")
    owners = list(ctx.slug_owners.get(record.slug, ()))
    if len(owners) <= 1:
        return _ok(InvariantId.SLUG_UNIQUE, "slug_unique", {"slug": record.slug})
    # a repeated record of the same topic still claims the slug twice
    others = list(owners)
    if record.topic_id in others:
        others.remove(record.topic_id)
    return _fail(
        InvariantId.SLUG_UNIQUE,
        "slug_collision",
        f"Slug {record.slug!r} is also produced by {', '.join(others)}",
        evidence=({"kind": "slug", "value": record.slug, "owners": owners},),
    )


def check_record_present(ctx: CheckContext) -> InvariantOutcome:
    definition = ctx.definition
    if definition is None or not definition.published:
        return _ok(InvariantId.RECORD_PRESENT, "record_not_required")
    if ctx.record is not None:
        return _ok(InvariantId.RECORD_PRESENT, "record_present")
    return _fail(
        InvariantId.RECORD_PRESENT,
        "record_missing",
        "Published topic has no compiled record",
    )


def check_record_digest_fresh(ctx: CheckContext) -> InvariantOutcome:
    if ctx.definition is None or ctx.record is None or not ctx.records_supplied:
        return _ok(InvariantId.RECORD_DIGEST_FRESH, "digest_not_applicable")
    expected = content_digest(ctx.definition)
    if ctx.record.source_digest == expected:
        return _ok(InvariantId.RECORD_DIGEST_FRESH, "digest_fresh")
    return _fail(
        InvariantId.RECORD_DIGEST_FRESH,
        "digest_stale",
        "Compiled record is stale; recompile the topic records",
        evidence=({"kind": "digest", "expected": expected, "actual": ctx.record.source_digest},),
        validity=Validity.DEGRADED,
    )


REGISTRY: dict[InvariantId, Checker] = {
    InvariantId.REQUIRED_INPUT_COUNT: check_required_input_count,
    InvariantId.OPTIONAL_INPUT_COUNT: check_optional_input_count,
    InvariantId.INPUT_FIELDS_NON_EMPTY: check_input_fields_non_empty,
    InvariantId.INPUT_KEYS_UNIQUE: check_input_keys_unique,
    InvariantId.DEFAULT_OUTCOME_ELIGIBLE: check_default_outcome_eligible,
    InvariantId.CONFIDENCE_RANGE_BOUNDED: check_confidence_range_bounded,
    InvariantId.SLUG_UNIQUE: check_slug_unique,
    InvariantId.RECORD_PRESENT: check_record_present,
    InvariantId.RECORD_DIGEST_FRESH: check_record_digest_fresh,
}


def run_checks(ctx: CheckContext) -> list[InvariantOutcome]:
    return [checker(ctx) for checker in REGISTRY.values()]
