# topic_bridge/inference.py
"""
Prose heuristics that classify a topic from its id and question text.

Authors are expected to tag topics explicitly (`TopicTags`); these rules only
backfill fields left untagged. Each facet runs its rule phases in order and the
first applicable rule wins. The final phase always applies, so every facet has
a total answer.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, Protocol, TypeVar

from topic_bridge.contracts import Outcome, TimeContext, TravelerSegment

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)

DEFAULT_DESTINATIONS: tuple[str, ...] = ("Tanzania", "Kenya", "Botswana")
DEFAULT_SEGMENTS: tuple[TravelerSegment, ...] = (TravelerSegment.FIRST_TIME,)

COMPARISON_OUTCOMES: tuple[Outcome, ...] = (Outcome.BOOK, Outcome.SWITCH)
ALL_OUTCOMES: tuple[Outcome, ...] = (Outcome.BOOK, Outcome.WAIT, Outcome.SWITCH, Outcome.DISCARD)
STANDARD_OUTCOMES: tuple[Outcome, ...] = (Outcome.BOOK, Outcome.WAIT, Outcome.SWITCH)

HIGH_UNCERTAINTY_IDS = frozenset({"river-crossings", "calving-season", "family-young-kids", "multigenerational"})
CAUTION_IDS = frozenset({"family-young-kids", "green-season-value", "cheap-warning", "river-crossings"})

COUNTRY_PREFIXES: dict[str, tuple[str, ...]] = {
    "tz-": ("Tanzania",),
    "ke-": ("Kenya",),
    "bw-": ("Botswana",),
}

COMPARISON_DESTINATIONS: dict[str, tuple[str, ...]] = {
    "tz-vs-ke": ("Tanzania", "Kenya"),
    "tz-vs-bw": ("Tanzania", "Botswana"),
    "sa-vs-ea": ("South Africa", "Tanzania", "Kenya"),
    "uganda-vs-rwanda": ("Uganda", "Rwanda"),
    "serengeti-vs-mara": ("Tanzania", "Kenya"),
    "kruger-vs-private": ("South Africa",),
}

MONTH_TOPICS: dict[str, str] = {
    "tz-feb": "February",
    "tz-jul": "July",
    "tz-nov": "November",
    "ke-aug": "August",
    "bw-jun": "June",
    "christmas-safari": "December",
}


@dataclass(frozen=True)
class InferenceContext:
    topic_id: str
    question: str
    normalized: str

    def mentions(self, *phrases: str) -> bool:
        return any(p in self.normalized for p in phrases)


def build_inference_context(topic_id: str, question: str) -> InferenceContext:
    return InferenceContext(
        topic_id=topic_id,
        question=question,
        normalized=" ".join((question or "").lower().split()),
    )


@dataclass(frozen=True)
class Inference(Generic[T]):
    """A facet value plus the rule that produced it."""

    value: T
    rule: str
    phase: str

    @property
    def is_fallback(self) -> bool:
        return self.phase == "fallback"


class Rule(Protocol[T_co]):
    name: str

    def applies(self, ctx: InferenceContext) -> bool: ...

    def emit(self, ctx: InferenceContext) -> T_co: ...


@dataclass(frozen=True)
class FunctionRule(Generic[T]):
    name: str
    _applies: Callable[[InferenceContext], bool]
    _emit: Callable[[InferenceContext], T]

    def applies(self, ctx: InferenceContext) -> bool:
        return self._applies(ctx)

    def emit(self, ctx: InferenceContext) -> T:
        return self._emit(ctx)


def _run_phases(ctx: InferenceContext, phases: dict[str, list[FunctionRule[T]]]) -> Inference[T]:
    for phase, rules in phases.items():
        for rule in rules:
            if rule.applies(ctx):
                return Inference(value=rule.emit(ctx), rule=rule.name, phase=phase)
    raise LookupError(f"no inference rule applied to {ctx.topic_id!r}")  # pragma: no cover


# ------------------------------------------------------------------------------
# Destinations
# ------------------------------------------------------------------------------


def _country_prefix(ctx: InferenceContext) -> tuple[str, ...] | None:
    for prefix, countries in COUNTRY_PREFIXES.items():
        if ctx.topic_id.startswith(prefix):
            return countries
    if ctx.topic_id == "budget-tanzania":
        return ("Tanzania",)
    if "rwanda" in ctx.topic_id:
        return ("Rwanda",)
    if "uganda" in ctx.topic_id:
        return ("Uganda",)
    return None


def _question_destinations(ctx: InferenceContext) -> tuple[str, ...] | None:
    if ctx.mentions("tanzania") and ctx.mentions("kenya"):
        return ("Tanzania", "Kenya")
    if ctx.mentions("okavango"):
        return ("Botswana",)
    if ctx.mentions("kruger"):
        return ("South Africa",)
    return None


DESTINATION_RULES: dict[str, list[FunctionRule[tuple[str, ...]]]] = {
    "id-prefix": [
        FunctionRule(
            name="country_prefix",
            _applies=lambda ctx: _country_prefix(ctx) is not None,
            _emit=lambda ctx: _country_prefix(ctx) or (),
        ),
    ],
    "comparison": [
        FunctionRule(
            name="comparison_id",
            _applies=lambda ctx: ctx.topic_id in COMPARISON_DESTINATIONS,
            _emit=lambda ctx: COMPARISON_DESTINATIONS[ctx.topic_id],
        ),
    ],
    "keyword": [
        FunctionRule(
            name="question_keyword",
            _applies=lambda ctx: _question_destinations(ctx) is not None,
            _emit=lambda ctx: _question_destinations(ctx) or (),
        ),
    ],
    "fallback": [
        FunctionRule(
            name="default_destinations",
            _applies=lambda _ctx: True,
            _emit=lambda _ctx: DEFAULT_DESTINATIONS,
        ),
    ],
}


def infer_destinations(ctx: InferenceContext) -> Inference[tuple[str, ...]]:
    return _run_phases(ctx, DESTINATION_RULES)


# ------------------------------------------------------------------------------
# Time context
# ------------------------------------------------------------------------------


TIME_CONTEXT_RULES: dict[str, list[FunctionRule[TimeContext | None]]] = {
    "exact-id": [
        FunctionRule(
            name="month_topic",
            _applies=lambda ctx: ctx.topic_id in MONTH_TOPICS,
            _emit=lambda ctx: TimeContext(month=MONTH_TOPICS[ctx.topic_id]),
        ),
    ],
    "keyword": [
        FunctionRule(
            name="green_season",
            _applies=lambda ctx: ctx.topic_id == "green-season-value" or ctx.mentions("green season"),
            _emit=lambda _ctx: TimeContext(season="green"),
        ),
        FunctionRule(
            name="dry_season",
            _applies=lambda ctx: ctx.topic_id == "tz-dry-season" or ctx.mentions("dry season"),
            _emit=lambda _ctx: TimeContext(season="dry"),
        ),
        FunctionRule(
            name="calving",
            _applies=lambda ctx: ctx.topic_id == "calving-season" or ctx.mentions("calving"),
            _emit=lambda _ctx: TimeContext(season="calving", month="February"),
        ),
    ],
    "fallback": [
        FunctionRule(
            name="no_time_context",
            _applies=lambda _ctx: True,
            _emit=lambda _ctx: None,
        ),
    ],
}


def infer_time_context(ctx: InferenceContext) -> Inference[TimeContext | None]:
    return _run_phases(ctx, TIME_CONTEXT_RULES)


# ------------------------------------------------------------------------------
# Traveler segments (additive: every matching rule contributes)
# ------------------------------------------------------------------------------


SEGMENT_RULES: list[FunctionRule[tuple[TravelerSegment, ...]]] = [
    FunctionRule(
        name="first_time",
        _applies=lambda ctx: ctx.topic_id == "first-timer-ready" or ctx.mentions("first"),
        _emit=lambda _ctx: (TravelerSegment.FIRST_TIME,),
    ),
    FunctionRule(
        name="solo",
        _applies=lambda ctx: ctx.topic_id == "solo-safari-fit" or ctx.mentions("solo"),
        _emit=lambda _ctx: (TravelerSegment.SOLO,),
    ),
    FunctionRule(
        name="families",
        _applies=lambda ctx: ctx.topic_id == "family-young-kids" or ctx.mentions("children", "kids"),
        _emit=lambda _ctx: (TravelerSegment.FAMILIES,),
    ),
    FunctionRule(
        name="multigenerational",
        _applies=lambda ctx: ctx.topic_id == "multigenerational",
        _emit=lambda _ctx: (TravelerSegment.FAMILIES, TravelerSegment.MULTIGENERATIONAL),
    ),
    FunctionRule(
        name="honeymoon",
        _applies=lambda ctx: ctx.topic_id == "honeymoon-fit" or ctx.mentions("honeymoon"),
        _emit=lambda _ctx: (TravelerSegment.COUPLES, TravelerSegment.HONEYMOON),
    ),
    FunctionRule(
        name="budget_conscious",
        _applies=lambda ctx: "budget" in ctx.topic_id or ctx.mentions("budget"),
        _emit=lambda _ctx: (TravelerSegment.BUDGET_CONSCIOUS,),
    ),
    FunctionRule(
        name="luxury",
        _applies=lambda ctx: ctx.topic_id == "luxury-worth-it" or ctx.mentions("luxury"),
        _emit=lambda _ctx: (TravelerSegment.LUXURY,),
    ),
    FunctionRule(
        name="repeat",
        _applies=lambda ctx: "repeat" in ctx.topic_id or ctx.mentions("repeat"),
        _emit=lambda _ctx: (TravelerSegment.REPEAT,),
    ),
]


def infer_traveler_segments(ctx: InferenceContext) -> Inference[tuple[TravelerSegment, ...]]:
    segments: list[TravelerSegment] = []
    matched: list[str] = []
    for rule in SEGMENT_RULES:
        if not rule.applies(ctx):
            continue
        matched.append(rule.name)
        for segment in rule.emit(ctx):
            if segment not in segments:
                segments.append(segment)

    if not segments:
        return Inference(value=DEFAULT_SEGMENTS, rule="default_segment", phase="fallback")
    return Inference(value=tuple(segments), rule="+".join(matched), phase="keyword")


# ------------------------------------------------------------------------------
# Outcomes
# ------------------------------------------------------------------------------


def is_comparison_question(ctx: InferenceContext) -> bool:
    return ctx.mentions(" or ", " vs ")


OUTCOME_RULES: dict[str, list[FunctionRule[tuple[Outcome, ...]]]] = {
    "comparison": [
        FunctionRule(
            name="comparison_question",
            _applies=is_comparison_question,
            _emit=lambda _ctx: COMPARISON_OUTCOMES,
        ),
    ],
    "exact-id": [
        FunctionRule(
            name="high_uncertainty",
            _applies=lambda ctx: "green-season" in ctx.topic_id or ctx.topic_id in HIGH_UNCERTAINTY_IDS,
            _emit=lambda _ctx: ALL_OUTCOMES,
        ),
    ],
    "default": [
        FunctionRule(
            name="standard_outcomes",
            _applies=lambda _ctx: True,
            _emit=lambda _ctx: STANDARD_OUTCOMES,
        ),
    ],
}


def infer_eligible_outcomes(ctx: InferenceContext) -> Inference[tuple[Outcome, ...]]:
    return _run_phases(ctx, OUTCOME_RULES)


def infer_default_outcome(ctx: InferenceContext) -> Inference[Outcome]:
    if ctx.topic_id in CAUTION_IDS:
        return Inference(value=Outcome.WAIT, rule="caution_topic", phase="exact-id")
    return Inference(value=Outcome.BOOK, rule="actionable_default", phase="default")
