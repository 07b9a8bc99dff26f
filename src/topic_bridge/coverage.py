# topic_bridge/coverage.py
"""
Offline coverage verification for the topic definition set.

Runs in CI before release. Content defects (input counts, empty fields,
duplicate keys, colliding slugs, missing or stale compiled records) are
collected rather than raised, so one run reports every problem.

Usage:
    topic-bridge-verify
    topic-bridge-verify --records artifacts/topic_records.jsonl --json
"""
from __future__ import annotations

import argparse
import json
from collections import Counter
from collections.abc import Iterable, Sequence
from typing import Literal

from loguru import logger
from pydantic import BaseModel, Field

from topic_bridge.adapters.persistence import read_topic_records
from topic_bridge.catalog import load_input_catalog
from topic_bridge.compiler import compile_records
from topic_bridge.contracts import TopicDefinition, TopicRecord
from topic_bridge.definitions import load_topic_definitions
from topic_bridge.invariants import TopicCheckContext, run_checks
from topic_bridge.logger import setup_logger
from topic_bridge.settings import get_settings


class CoverageError(BaseModel):
    topic_id: str
    category: Literal["coverage", "integrity", "input"]
    message: str
    code: str = ""


class CoverageReport(BaseModel):
    topic_count: int
    slug_count: int
    errors: list[CoverageError] = Field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.errors

    def by_category(self, category: str) -> list[CoverageError]:
        return [e for e in self.errors if e.category == category]


def verify_coverage(
    definitions: Iterable[TopicDefinition],
    records: Sequence[TopicRecord] | None = None,
) -> CoverageReport:
    """
    Check every definition and its compiled record.

    With ``records=None`` the definitions are compiled in-process, which checks
    the compiler's output but cannot detect a stale build artifact.
    """
    defs = list(definitions)
    records_supplied = records is not None
    recs = list(records) if records is not None else compile_records(defs, enforce_unique_slugs=False)

    errors: list[CoverageError] = []

    seen_ids: set[str] = set()
    for definition in defs:
        if definition.id in seen_ids:
            errors.append(
                CoverageError(
                    topic_id=definition.id,
                    category="integrity",
                    message="Duplicate topic id in definition set",
                    code="duplicate_topic_id",
                )
            )
        seen_ids.add(definition.id)

    records_by_id: dict[str, TopicRecord] = {}
    record_counts: Counter[str] = Counter()
    slug_owners: dict[str, list[str]] = {}
    for record in recs:
        records_by_id.setdefault(record.topic_id, record)
        record_counts[record.topic_id] += 1
        slug_owners.setdefault(record.slug, []).append(record.topic_id)

    # each topic compiles to exactly one record
    for topic_id, count in record_counts.items():
        if count > 1:
            errors.append(
                CoverageError(
                    topic_id=topic_id,
                    category="coverage",
                    message=f"Topic has {count} compiled records (expected exactly one)",
                    code="duplicate_record",
                )
            )

    for record in recs:
        if record.topic_id not in seen_ids:
            errors.append(
                CoverageError(
                    topic_id=record.topic_id,
                    category="coverage",
                    message="Compiled record has no topic definition",
                    code="orphan_record",
                )
            )

    for definition in defs:
        ctx = TopicCheckContext(
            topic_id=definition.id,
            definition=definition,
            record=records_by_id.get(definition.id),
            slug_owners=slug_owners,
            records_supplied=records_supplied,
        )
        for outcome in run_checks(ctx):
            if outcome.passed:
                continue
            errors.append(
                CoverageError(
                    topic_id=definition.id,
                    category=outcome.category.value,
                    message=outcome.reason,
                    code=outcome.code,
                )
            )

    return CoverageReport(topic_count=len(defs), slug_count=len(slug_owners), errors=errors)


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Verify topic definitions and compiled records before release.")
    parser.add_argument("--definitions", default=None, help="Topic definitions JSON (defaults to packaged data).")
    parser.add_argument("--catalog", default=None, help="Input catalog JSON (defaults to packaged data).")
    parser.add_argument("--records", default=None, help="Compiled topic records JSONL artifact to verify.")
    parser.add_argument("--json", action="store_true", help="Print the report as JSON on stdout.")
    return parser.parse_args(argv)


def _log_report(report: CoverageReport) -> None:
    logger.info(f"Topics: {report.topic_count}  Slugs: {report.slug_count}")
    for category in ("coverage", "integrity", "input"):
        found = report.by_category(category)
        if found:
            logger.error(f"{category}: {len(found)} error(s)")
            for error in found:
                logger.error(f"  [{error.topic_id}] {error.message}")
        else:
            logger.info(f"{category}: ok")
    if report.passed:
        logger.success("All coverage checks passed")


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()
    setup_logger(settings.log_level, settings.log_file)

    catalog_path = args.catalog or settings.catalog_path
    definitions_path = args.definitions or settings.definitions_path
    try:
        catalog = load_input_catalog(catalog_path)
        definitions = load_topic_definitions(definitions_path, catalog=catalog)
        records = read_topic_records(args.records) if args.records else None
    except (ValueError, OSError) as exc:
        logger.error(f"Could not load inputs: {exc}")
        return 1

    report = verify_coverage(definitions, records)
    if args.json:
        print(json.dumps({**report.model_dump(mode="json"), "passed": report.passed}, indent=2))
    _log_report(report)
    return 0 if report.passed else 1


if __name__ == "__main__":
    raise SystemExit(main())
