# topic_bridge/backfill.py
"""
Migration helper: propose explicit `TopicTags` from the prose heuristics.

The report lists, per topic, the tags the heuristics would assign and every
field where an author's explicit tag disagrees with them. Disagreements are
usually heuristic misclassifications that the explicit tag already corrects.
"""
from __future__ import annotations

import argparse
import json
from collections.abc import Iterable, Sequence
from typing import Any

from loguru import logger
from pydantic import BaseModel, Field

from topic_bridge.contracts import TopicDefinition, TopicTags
from topic_bridge.definitions import load_topic_definitions
from topic_bridge.inference import (
    build_inference_context,
    infer_default_outcome,
    infer_destinations,
    infer_eligible_outcomes,
    infer_time_context,
    infer_traveler_segments,
)
from topic_bridge.logger import setup_logger
from topic_bridge.settings import get_settings

TAG_FIELDS = ("destinations", "time_context", "traveler_segments", "eligible_outcomes", "default_outcome")


def backfill_tags(definition: TopicDefinition) -> TopicTags:
    ctx = build_inference_context(definition.id, definition.question)
    eligible = infer_eligible_outcomes(ctx).value
    default = infer_default_outcome(ctx).value
    return TopicTags(
        destinations=infer_destinations(ctx).value,
        time_context=infer_time_context(ctx).value,
        traveler_segments=infer_traveler_segments(ctx).value,
        eligible_outcomes=eligible,
        default_outcome=default if default in eligible else eligible[0],
    )


class TagDisagreement(BaseModel):
    field: str
    explicit: Any
    suggested: Any


class BackfillEntry(BaseModel):
    topic_id: str
    suggested: TopicTags
    disagreements: list[TagDisagreement] = Field(default_factory=list)
    untagged_fields: list[str] = Field(default_factory=list)


def _entry(definition: TopicDefinition) -> BackfillEntry:
    suggested = backfill_tags(definition)
    explicit = definition.tags or TopicTags()
    disagreements: list[TagDisagreement] = []
    untagged: list[str] = []

    for name in TAG_FIELDS:
        mine = getattr(explicit, name)
        theirs = getattr(suggested, name)
        if mine is None:
            untagged.append(name)
        elif mine != theirs:
            disagreements.append(
                TagDisagreement(
                    field=name,
                    explicit=explicit.model_dump(mode="json")[name],
                    suggested=suggested.model_dump(mode="json")[name],
                )
            )

    return BackfillEntry(
        topic_id=definition.id,
        suggested=suggested,
        disagreements=disagreements,
        untagged_fields=untagged,
    )


def backfill_report(definitions: Iterable[TopicDefinition]) -> list[BackfillEntry]:
    return [_entry(d) for d in definitions]


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Suggest explicit topic tags from the prose heuristics.")
    parser.add_argument("--definitions", default=None, help="Topic definitions JSON (defaults to packaged data).")
    parser.add_argument(
        "--only-disagreements",
        action="store_true",
        help="Only print topics whose explicit tags disagree with the heuristics.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()
    setup_logger(settings.log_level, settings.log_file)

    try:
        definitions = load_topic_definitions(args.definitions or settings.definitions_path)
    except (ValueError, OSError) as exc:
        logger.error(f"Could not load definitions: {exc}")
        return 1

    report = backfill_report(definitions)
    if args.only_disagreements:
        report = [entry for entry in report if entry.disagreements]

    print(json.dumps([entry.model_dump(mode="json", exclude_none=True) for entry in report], indent=2))
    conflicted = sum(1 for entry in report if entry.disagreements)
    logger.info(f"{len(report)} topics reported, {conflicted} with tag disagreements")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
