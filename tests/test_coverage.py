from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest

from topic_bridge.adapters.persistence import write_topic_records
from topic_bridge.compiler import compile_records
from topic_bridge.contracts import RuntimeInput, TopicDefinition, TopicRecord
from topic_bridge.coverage import main, verify_coverage
from topic_bridge.definitions import TopicDefinitionSet
from topic_bridge.settings import get_settings


@pytest.fixture(autouse=True)
def _fresh_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.delenv("TOPIC_BRIDGE_LOG_FILE", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def test_packaged_definition_set_passes(definitions: TopicDefinitionSet) -> None:
    report = verify_coverage(definitions)

    assert report.passed, [e.model_dump() for e in report.errors]
    assert report.topic_count == 45
    assert report.slug_count == 45


def test_input_count_violations_are_collected(
    make_definition: Callable[..., TopicDefinition], make_runtime_input: Callable[..., RuntimeInput]
) -> None:
    too_few = make_definition("too-few", required=[make_runtime_input("user_context.budget_band")])
    too_many = make_definition(
        "too-many", required=[make_runtime_input(f"request.constraints.r{i}") for i in range(5)]
    )

    report = verify_coverage([too_few, too_many])

    assert not report.passed
    assert [(e.topic_id, e.code) for e in report.by_category("input")] == [
        ("too-few", "required_count_out_of_range"),
        ("too-many", "required_count_out_of_range"),
    ]


def test_duplicate_ids_and_slug_collisions_are_integrity_errors(
    make_definition: Callable[..., TopicDefinition],
) -> None:
    report = verify_coverage([make_definition("same_slug"), make_definition("same-slug"), make_definition("same-slug")])

    codes = [(e.topic_id, e.code) for e in report.by_category("integrity")]

    assert ("same-slug", "duplicate_topic_id") in codes
    assert ("same_slug", "slug_collision") in codes


def test_missing_and_orphan_records_are_coverage_errors(
    make_definition: Callable[..., TopicDefinition], make_record: Callable[..., TopicRecord]
) -> None:
    report = verify_coverage([make_definition("defined")], records=[make_record("orphaned")])

    assert [(e.topic_id, e.code) for e in report.by_category("coverage")] == [
        ("orphaned", "orphan_record"),
        ("defined", "record_missing"),
    ]


def test_stale_records_are_reported(make_definition: Callable[..., TopicDefinition]) -> None:
    records = compile_records([make_definition("edited")])
    edited = make_definition("edited", question="Has the question changed?")

    report = verify_coverage([edited], records=records)

    assert [e.code for e in report.errors] == ["digest_stale"]
    assert report.errors[0].category == "coverage"


def test_unpublished_topics_do_not_need_records(make_definition: Callable[..., TopicDefinition]) -> None:
    assert verify_coverage([make_definition("draft", published=False)], records=[]).passed


def test_main_passes_for_packaged_data(capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["--json"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["passed"] is True
    assert payload["topic_count"] == 45
    assert payload["errors"] == []


def test_main_verifies_a_records_artifact(tmp_path: Path, records_by_id: dict[str, TopicRecord]) -> None:
    artifact = tmp_path / "topic_records.jsonl"
    records = list(records_by_id.values())
    stale = records[0].model_copy(update={"source_digest": "sha256:stale"})
    write_topic_records(artifact, [stale, *records[1:]])

    assert main(["--records", str(artifact)]) == 1

    write_topic_records(artifact, records)
    assert main(["--records", str(artifact)]) == 0


def test_main_fails_on_unreadable_inputs(tmp_path: Path) -> None:
    assert main(["--definitions", str(tmp_path / "missing.json")]) == 1


def test_repeated_records_are_reported(definitions: TopicDefinitionSet) -> None:
    records = compile_records(definitions)

    report = verify_coverage(definitions, records=[*records, records[0]])

    assert not report.passed
    assert [(e.topic_id, e.code) for e in report.by_category("coverage")] == [(records[0].topic_id, "duplicate_record")]
    assert [(e.topic_id, e.code) for e in report.by_category("integrity")] == [(records[0].topic_id, "slug_collision")]


def test_main_rejects_an_artifact_with_a_repeated_record(
    tmp_path: Path, records_by_id: dict[str, TopicRecord]
) -> None:
    artifact = tmp_path / "topic_records.jsonl"
    records = list(records_by_id.values())
    write_topic_records(artifact, [*records, records[-1]])

    assert main(["--records", str(artifact)]) == 1
