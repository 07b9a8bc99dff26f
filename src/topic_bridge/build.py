# topic_bridge/build.py
"""Compile the topic definition set into the JSONL records artifact."""
from __future__ import annotations

import argparse
from collections.abc import Sequence

from loguru import logger

from topic_bridge.adapters.persistence import published_slugs, write_topic_records
from topic_bridge.catalog import load_input_catalog
from topic_bridge.compiler import compile_topics
from topic_bridge.definitions import load_topic_definitions
from topic_bridge.logger import setup_logger
from topic_bridge.settings import get_settings


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Compile topic definitions into runtime topic records.")
    parser.add_argument("--definitions", default=None, help="Topic definitions JSON (defaults to packaged data).")
    parser.add_argument("--catalog", default=None, help="Input catalog JSON (defaults to packaged data).")
    parser.add_argument("--output", default=None, help="JSONL artifact path (defaults to TOPIC_BRIDGE_RECORDS_PATH).")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail when any record still depends on heuristic backfill.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    settings = get_settings()
    setup_logger(settings.log_level, settings.log_file)

    try:
        catalog = load_input_catalog(args.catalog or settings.catalog_path)
        definitions = load_topic_definitions(args.definitions or settings.definitions_path, catalog=catalog)
        results = compile_topics(definitions)
    except (ValueError, OSError) as exc:
        logger.error(f"Compilation failed: {exc}")
        return 1

    heuristic = [r.record.topic_id for r in results if r.used_heuristics]
    if heuristic:
        logger.warning(f"{len(heuristic)} topics rely on heuristic tags: {', '.join(heuristic)}")
        if args.strict:
            return 1

    records = [r.record for r in results]
    output = args.output or settings.records_path
    count = write_topic_records(output, records)
    logger.info(f"Wrote {count} records ({len(published_slugs(records))} published) to {output}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
