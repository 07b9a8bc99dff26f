from __future__ import annotations

import json
from collections.abc import Callable

import pytest

from topic_bridge.backfill import TAG_FIELDS, backfill_report, backfill_tags, main
from topic_bridge.contracts import Outcome, TopicDefinition, TopicTags
from topic_bridge.definitions import TopicDefinitionSet
from topic_bridge.settings import get_settings


def test_suggested_tags_match_the_heuristics(definitions: TopicDefinitionSet) -> None:
    tags = backfill_tags(definitions.get("tz-jul"))

    assert tags.destinations == ("Tanzania",)
    assert tags.time_context is not None and tags.time_context.month == "July"
    assert tags.default_outcome in tags.eligible_outcomes


def test_explicit_tags_that_correct_a_heuristic_are_reported(definitions: TopicDefinitionSet) -> None:
    entries = {e.topic_id: e for e in backfill_report(definitions)}

    entry = entries["tz-vs-ke"]

    assert [(d.field, d.explicit, d.suggested) for d in entry.disagreements] == [
        ("destinations", ["Tanzania", "Kenya"], ["Tanzania"])
    ]
    assert "destinations" not in entry.untagged_fields


def test_untagged_definitions_list_every_field(make_definition: Callable[..., TopicDefinition]) -> None:
    (entry,) = backfill_report([make_definition()])

    assert entry.untagged_fields == list(TAG_FIELDS)
    assert entry.disagreements == []


def test_agreeing_explicit_tags_are_quiet(make_definition: Callable[..., TopicDefinition]) -> None:
    definition = make_definition("trip-length", question="Is 5 days enough?", tags=TopicTags(default_outcome=Outcome.BOOK))

    (entry,) = backfill_report([definition])

    assert entry.disagreements == []
    assert "default_outcome" not in entry.untagged_fields


def test_main_prints_only_disagreements(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
    monkeypatch.delenv("TOPIC_BRIDGE_LOG_FILE", raising=False)
    get_settings.cache_clear()

    assert main(["--only-disagreements"]) == 0

    printed = json.loads(capsys.readouterr().out)
    assert {"tz-vs-ke", "tz-vs-bw", "uganda-vs-rwanda"} <= {e["topic_id"] for e in printed}
    assert all(e["disagreements"] for e in printed)
    get_settings.cache_clear()
