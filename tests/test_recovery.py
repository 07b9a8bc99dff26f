from __future__ import annotations

import json
from collections.abc import Callable

import pytest

from topic_bridge.contracts import DecisionResponse, MissingInput, RuntimeInput, TopicRecord
from topic_bridge.recovery import (
    build_example_snippet,
    build_recovery_model,
    fields_for_reason,
    get_missing_inputs,
    is_known_refusal_reason,
)


def _keys(inputs: list[MissingInput]) -> list[str]:
    return [m.key for m in inputs]


def test_unknown_reason_uses_required_inputs_when_in_range(
    make_record: Callable[..., TopicRecord], make_runtime_input: Callable[..., RuntimeInput]
) -> None:
    required = [
        make_runtime_input("user_context.dates.month", example="July"),
        make_runtime_input("user_context.budget_band"),
        make_runtime_input("user_context.group_size", example="4"),
    ]
    record = make_record(required=required)

    assert _keys(get_missing_inputs(None, record)) == [i.key for i in required]
    assert _keys(get_missing_inputs("the service said no", record)) == [i.key for i in required]


def test_short_lists_are_padded_from_optional_then_common_keys(
    make_record: Callable[..., TopicRecord], make_runtime_input: Callable[..., RuntimeInput]
) -> None:
    record = make_record(
        required=[make_runtime_input("user_context.budget_band")],
        optional=[make_runtime_input("user_context.pace_preference", example="slow")],
    )

    missing = get_missing_inputs(None, record)

    assert _keys(missing) == [
        "user_context.budget_band",
        "user_context.pace_preference",
        "user_context.dates.month",
    ]


def test_topic_without_inputs_still_gets_three(make_record: Callable[..., TopicRecord]) -> None:
    missing = get_missing_inputs(None, make_record(required=()))

    assert _keys(missing) == ["user_context.dates.month", "user_context.budget_band", "user_context.group_size"]
    assert [m.label for m in missing] == ["Travel month", "Budget tier", "Group size"]


def test_long_lists_are_truncated_to_seven(
    make_record: Callable[..., TopicRecord], make_runtime_input: Callable[..., RuntimeInput]
) -> None:
    record = make_record(required=[make_runtime_input(f"request.constraints.c{i}") for i in range(9)])

    assert len(get_missing_inputs(None, record)) == 7


def test_every_packaged_topic_yields_a_renderable_list(records_by_id: dict[str, TopicRecord]) -> None:
    for record in records_by_id.values():
        for reason in (None, "missing_material_inputs", "inputs_conflict_unbounded", "unrecognized"):
            assert 3 <= len(get_missing_inputs(reason, record)) <= 7, (record.topic_id, reason)


def test_conflict_reason_selects_budget_and_comfort_first(make_record: Callable[..., TopicRecord]) -> None:
    missing = get_missing_inputs("inputs_conflict_unbounded", make_record())

    assert _keys(missing)[:2] == ["user_context.budget_band", "request.constraints.comfort_level"]
    assert len(missing) == 3
    # the record's own label wins over the default table
    assert missing[0].label == "Budget tier"
    assert missing[1].label == "Comfort level"


@pytest.mark.parametrize(
    "reason, fields",
    [
        ("missing_material_inputs", ["user_context.dates.month", "user_context.traveler_type", "user_context.budget_band"]),
        ("MISSING_DATES", ["user_context.dates.month", "user_context.dates.year"]),
        ("  Missing Group Size ", ["user_context.group_size"]),
        ("Refused: missing destination for this trip", ["request.destinations_considered"]),
        ("guarantee_requested", ["user_context.risk_tolerance"]),
        ("inputs_conflict_unbounded", ["user_context.budget_band", "request.constraints.comfort_level"]),
    ],
)
def test_reason_matching_is_exact_then_case_insensitive_then_substring(reason: str, fields: list[str]) -> None:
    assert is_known_refusal_reason(reason)
    assert fields_for_reason(reason) == fields


@pytest.mark.parametrize("reason", [None, "", "weather is unpredictable"])
def test_unrecognized_reasons(reason: str | None) -> None:
    assert not is_known_refusal_reason(reason)
    assert fields_for_reason(reason) is None


def test_example_snippet_parses_json_literals() -> None:
    snippet = build_example_snippet(
        [
            MissingInput(key="user_context.dates.month", label="Travel month", example="July"),
            MissingInput(key="user_context.dates.year", label="Travel year", example="2026"),
            MissingInput(key="request.constraints.flexible", label="Flexible", example="true"),
            MissingInput(key="request.destinations_considered", label="Destinations", example='["Tanzania", "Kenya"]'),
            MissingInput(key="request.constraints.note", label="Note", example="NaN"),
        ]
    )

    assert json.loads(snippet) == {
        "user_context": {"dates": {"month": "July", "year": 2026}},
        "request": {
            "constraints": {"flexible": True, "note": "NaN"},
            "destinations_considered": ["Tanzania", "Kenya"],
        },
    }
    assert snippet.startswith("{\n  ")


def test_recovery_model_for_a_known_reason(
    make_record: Callable[..., TopicRecord], make_refusal_response: Callable[..., DecisionResponse]
) -> None:
    refusal = make_refusal_response(reason="missing_dates").refusal
    assert refusal is not None

    model = build_recovery_model(refusal, make_record())

    assert model.known_reason
    assert [m.key for m in model.missing_inputs] == [
        "user_context.dates.month",
        "user_context.dates.year",
        "user_context.budget_band",
    ]
    assert json.loads(model.example_snippet)["user_context"]["dates"] == {"month": "July", "year": 2026}
    assert model.safe_next_step == "Tell us when you plan to travel."


def test_recovery_model_falls_back_to_the_refusal_code(
    make_record: Callable[..., TopicRecord], make_refusal_response: Callable[..., DecisionResponse]
) -> None:
    refusal = make_refusal_response(reason="Budget and comfort cannot both hold", code="CONFLICTING_INPUTS").refusal
    assert refusal is not None

    model = build_recovery_model(refusal, make_record())

    assert model.known_reason
    assert model.reason == "Budget and comfort cannot both hold"
    assert [m.key for m in model.missing_inputs][:2] == [
        "user_context.budget_band",
        "request.constraints.comfort_level",
    ]


def test_recovery_model_for_an_unknown_reason(
    make_record: Callable[..., TopicRecord], make_refusal_response: Callable[..., DecisionResponse]
) -> None:
    refusal = make_refusal_response(reason="something unexpected").refusal
    assert refusal is not None

    model = build_recovery_model(refusal, make_record())

    assert not model.known_reason
    assert [m.key for m in model.missing_inputs] == [
        "user_context.budget_band",
        "user_context.dates.month",
        "user_context.group_size",
    ]
