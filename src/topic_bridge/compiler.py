# topic_bridge/compiler.py
"""
Topic compiler: authoring-time `TopicDefinition` -> runtime `TopicRecord`.

Explicit `TopicTags` win. Untagged facets are backfilled by the rule phases in
`topic_bridge.inference`, and every backfill is reported as a `CompileWarning`
so tooling can see which records still depend on prose heuristics.

Compilation of a single topic never raises for content ambiguity. Slug
uniqueness across a set is asserted by `compile_topics`.
"""
from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from loguru import logger

from topic_bridge.contracts import (
    CompilationResult,
    CompileWarning,
    DecisionComplexity,
    SlugCollisionError,
    TopicDefinition,
    TopicRecord,
)
from topic_bridge.inference import (
    Inference,
    build_inference_context,
    infer_default_outcome,
    infer_destinations,
    infer_eligible_outcomes,
    infer_time_context,
    infer_traveler_segments,
)
from topic_bridge.stable_ids import content_digest

SLUG_MAPPINGS: dict[str, str] = {
    # month-specific
    "tz-feb": "tanzania-safari-february",
    "tz-jul": "tanzania-safari-july",
    "tz-nov": "tanzania-safari-november",
    "ke-aug": "kenya-safari-august",
    "bw-jun": "botswana-safari-june",
    # comparisons
    "tz-vs-ke": "tanzania-vs-kenya-first-safari",
    "tz-vs-bw": "tanzania-vs-botswana-safari",
    "sa-vs-ea": "south-africa-vs-east-africa-safari",
    "uganda-vs-rwanda": "uganda-vs-rwanda-gorillas",
    "serengeti-vs-mara": "serengeti-vs-masai-mara",
    "kruger-vs-private": "kruger-vs-private-reserves",
    "lodge-vs-tented": "lodge-vs-tented-camp",
    "private-vs-shared": "private-vs-shared-vehicle",
    "fly-vs-drive": "fly-vs-drive-between-parks",
    "inside-vs-outside-park": "stay-inside-or-outside-park",
    "peak-vs-value": "peak-season-vs-value-season",
    # personal fit
    "first-timer-ready": "am-i-ready-for-first-safari",
    "solo-safari-fit": "solo-safari-travel",
    "family-young-kids": "safari-with-young-children",
    "multigenerational": "multigenerational-safari",
    "honeymoon-fit": "safari-honeymoon",
    "wildlife-expectation": "big-five-expectations",
    # destinations
    "rwanda-gorillas-worth": "rwanda-gorillas-worth-it",
    "okavango-worth": "okavango-delta-worth-premium",
    "single-country-multi": "single-vs-multi-country-safari",
    # seasons
    "tz-dry-season": "tanzania-dry-season-only",
    "migration-timing": "great-migration-timing",
    "river-crossings": "mara-river-crossings-timing",
    "calving-season": "calving-season-safari",
    "green-season-value": "green-season-safari-worth-it",
    "christmas-safari": "christmas-safari-timing",
    "booking-lead-time": "safari-booking-lead-time",
    # experience
    "walking-safari": "walking-safari-worth-it",
    "self-drive-safari": "self-drive-safari",
    # accommodation
    "luxury-worth-it": "luxury-safari-worth-it",
    "budget-accommodation-ok": "budget-safari-accommodation",
    "camp-hopping": "multiple-camps-vs-one",
    # logistics
    "trip-length": "is-5-days-enough-for-safari",
    "ideal-length": "ideal-safari-length",
    "beach-extension": "safari-beach-extension",
    "agent-vs-direct": "book-safari-agent-vs-direct",
    # risk
    "malaria-decision": "avoid-malaria-zones-safari",
    # cost
    "total-budget": "safari-total-budget",
    "budget-tanzania": "tanzania-safari-on-budget",
    "cheap-warning": "cheap-safari-warning",
    "splurge-allocation": "safari-splurge-vs-save",
}

CONTEXT_LINES: dict[str, str] = {
    "first-timer-ready": "Readiness depends on expectations and preparation.",
    "solo-safari-fit": "Solo travel works, but costs and social dynamics differ.",
    "family-young-kids": "Age matters less than preparation.",
    "multigenerational": "Group dynamics require careful planning.",
    "honeymoon-fit": "Safari honeymoons reward the adventurous.",
    "wildlife-expectation": "The Big Five is a starting point, not a checklist.",
    "tz-vs-ke": "Both deliver, but they deliver differently.",
    "tz-vs-bw": "Different price points, different experiences.",
    "sa-vs-ea": "Malaria and self-drive are the key differentiators.",
    "rwanda-gorillas-worth": "The permit cost is high. The experience may justify it.",
    "uganda-vs-rwanda": "Cost vs convenience is the core trade-off.",
    "okavango-worth": "The premium buys exclusivity and water activities.",
    "serengeti-vs-mara": "Scale vs accessibility defines the choice.",
    "kruger-vs-private": "Self-drive freedom vs guided expertise.",
    "single-country-multi": "Depth often beats breadth on a first trip.",
    "tz-dry-season": "Dry season is optimal, but not the only option.",
    "migration-timing": "The migration is continuous, not a single event.",
    "river-crossings": "Crossings are unpredictable. Plan accordingly.",
    "calving-season": "Calving offers predator action in green conditions.",
    "green-season-value": "Green season divides opinion for good reason.",
    "christmas-safari": "Peak season pricing meets variable weather.",
    "tz-feb": "February rewards flexibility, but it is uneven.",
    "tz-jul": "July is peak season with clear trade-offs.",
    "ke-aug": "August is migration peak in the Mara.",
    "bw-jun": "June marks the start of Botswana dry season.",
    "booking-lead-time": "Lead time requirements vary by season and camp.",
    "walking-safari": "Walking adds immersion but requires fitness.",
    "self-drive-safari": "Self-drive works in some destinations, not others.",
    "private-vs-shared": "Private vehicles cost more but deliver control.",
    "lodge-vs-tented": "Both styles exist at all comfort levels.",
    "luxury-worth-it": "Luxury improves comfort, not wildlife.",
    "budget-accommodation-ok": "Budget safaris exist, but trade-offs are real.",
    "inside-vs-outside-park": "Inside-park means more game time.",
    "camp-hopping": "Moving camps adds variety but costs time.",
    "trip-length": "Five days works, but constraints matter.",
    "ideal-length": "Seven to ten days is the sweet spot for most.",
    "fly-vs-drive": "Flying saves time. Driving adds scenery.",
    "beach-extension": "Beach adds recovery time at added cost.",
    "agent-vs-direct": "Agents add value for complex itineraries.",
    "malaria-decision": "Malaria zones include the best wildlife areas.",
    "total-budget": "Budget ranges vary 10x depending on style.",
    "budget-tanzania": "Budget safaris exist, but trade-offs are real.",
    "peak-vs-value": "Peak season costs more for better conditions.",
    "cheap-warning": "Below market rates signal quality concerns.",
    "splurge-allocation": "Guide quality matters more than room luxury.",
}

GENERIC_CONTEXT_LINE = "A decision with trade-offs. Read the conditions."

DEFAULT_CONFIDENCE_RANGE: tuple[float, float] = (0.6, 0.85)

CONFIDENCE_BY_COMPLEXITY: dict[DecisionComplexity, tuple[float, float]] = {
    DecisionComplexity.BINARY: (0.7, 0.9),
    DecisionComplexity.CONDITIONAL: (0.6, 0.85),
    DecisionComplexity.MULTI_FACTOR: (0.5, 0.8),
}

PRIMARY_RISK_LIMIT = 3
KEY_TRADEOFF_LIMIT = 2

WARN_HEURISTIC = "heuristic_inference"
WARN_FALLBACK = "fallback_default"
WARN_DEFAULT_ADJUSTED = "default_outcome_adjusted"


def generate_slug(topic_id: str) -> str:
    return SLUG_MAPPINGS.get(topic_id) or topic_id.replace("_", "-")


def context_line_for(topic_id: str) -> str:
    return CONTEXT_LINES.get(topic_id, GENERIC_CONTEXT_LINE)


def confidence_range_for(complexity: DecisionComplexity | None) -> tuple[float, float]:
    if complexity is None:
        return DEFAULT_CONFIDENCE_RANGE
    return CONFIDENCE_BY_COMPLEXITY.get(complexity, DEFAULT_CONFIDENCE_RANGE)


class _WarningSink:
    def __init__(self, topic_id: str) -> None:
        self.topic_id = topic_id
        self.items: list[CompileWarning] = []

    def add(self, field: str, code: str, message: str) -> None:
        self.items.append(CompileWarning(topic_id=self.topic_id, field=field, code=code, message=message))

    def from_inference(self, field: str, inference: Inference[Any]) -> None:
        self.add(field, WARN_HEURISTIC, f"{field} inferred by rule {inference.rule!r} ({inference.phase})")
        if inference.is_fallback:
            self.add(field, WARN_FALLBACK, f"no rule classified {field}; default applied")


def compile_topic(definition: TopicDefinition) -> CompilationResult:
    """Compile one definition. Ambiguity is reported as warnings, never raised."""
    tags = definition.tags
    ctx = build_inference_context(definition.id, definition.question)
    sink = _WarningSink(definition.id)

    if tags is not None and tags.destinations is not None:
        destinations = tags.destinations
    else:
        inferred_destinations = infer_destinations(ctx)
        sink.from_inference("destinations", inferred_destinations)
        destinations = inferred_destinations.value

    if tags is not None and tags.time_context is not None:
        time_context = tags.time_context
    else:
        inferred_time = infer_time_context(ctx)
        sink.from_inference("time_context", inferred_time)
        time_context = inferred_time.value

    if tags is not None and tags.traveler_segments is not None:
        segments = tags.traveler_segments
    else:
        inferred_segments = infer_traveler_segments(ctx)
        sink.from_inference("traveler_segments", inferred_segments)
        segments = inferred_segments.value

    if tags is not None and tags.eligible_outcomes:
        eligible = tags.eligible_outcomes
    else:
        inferred_outcomes = infer_eligible_outcomes(ctx)
        sink.from_inference("eligible_outcomes", inferred_outcomes)
        eligible = inferred_outcomes.value

    if tags is not None and tags.default_outcome is not None:
        default_outcome = tags.default_outcome
    else:
        inferred_default = infer_default_outcome(ctx)
        sink.from_inference("default_outcome", inferred_default)
        default_outcome = inferred_default.value

    if default_outcome not in eligible:
        sink.add(
            "default_outcome",
            WARN_DEFAULT_ADJUSTED,
            f"{default_outcome.value!r} is not eligible; using {eligible[0].value!r}",
        )
        default_outcome = eligible[0]

    record = TopicRecord(
        topic_id=definition.id,
        slug=generate_slug(definition.id),
        question=definition.question,
        context_line=context_line_for(definition.id),
        published=definition.published,
        destinations=destinations,
        time_context=time_context,
        traveler_segments=segments,
        primary_risks=definition.refusal_triggers[:PRIMARY_RISK_LIMIT],
        key_tradeoffs=tuple(f"{t.gain} vs {t.loss}" for t in definition.tradeoffs[:KEY_TRADEOFF_LIMIT]),
        eligible_outcomes=eligible,
        default_outcome=default_outcome,
        confidence_range=confidence_range_for(definition.decision_complexity),
        decision_complexity=definition.decision_complexity,
        launch_priority=definition.launch_priority,
        assurance_eligible=definition.assurance_eligible,
        seo_intent=definition.seo_intent,
        bucket=definition.bucket,
        compare_enabled=definition.compare_enabled,
        required_inputs=definition.required_inputs,
        optional_inputs=definition.optional_inputs,
        assumptions=definition.assumptions,
        tradeoffs=definition.tradeoffs,
        change_conditions=definition.change_conditions,
        refusal_triggers=definition.refusal_triggers,
        source_digest=content_digest(definition),
    )

    for warning in sink.items:
        logger.debug(f"[{warning.topic_id}] {warning.code}: {warning.message}")
    return CompilationResult(record=record, warnings=tuple(sink.items))


def find_slug_collisions(results: Iterable[CompilationResult]) -> dict[str, list[str]]:
    by_slug: dict[str, list[str]] = {}
    for result in results:
        by_slug.setdefault(result.record.slug, []).append(result.record.topic_id)
    return {slug: ids for slug, ids in by_slug.items() if len(ids) > 1}


def compile_topics(
    definitions: Iterable[TopicDefinition],
    *,
    enforce_unique_slugs: bool = True,
) -> list[CompilationResult]:
    results = [compile_topic(d) for d in definitions]

    collisions = find_slug_collisions(results)
    if collisions:
        for slug, ids in collisions.items():
            logger.error(f"Slug {slug!r} produced by {ids}")
        if enforce_unique_slugs:
            raise SlugCollisionError(collisions)

    heuristic = sum(1 for r in results if r.used_heuristics)
    logger.debug(f"Compiled {len(results)} topics ({heuristic} with heuristic backfill)")
    return results


def compile_records(
    definitions: Iterable[TopicDefinition],
    *,
    enforce_unique_slugs: bool = True,
) -> list[TopicRecord]:
    return [r.record for r in compile_topics(definitions, enforce_unique_slugs=enforce_unique_slugs)]
