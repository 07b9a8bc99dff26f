from __future__ import annotations

from collections.abc import Callable

from topic_bridge.contracts import DecisionResponse, DiffStatus, TopicRecord
from topic_bridge.diff import compute_diff, diff_string_sets, format_confidence


def test_identical_decisions_compare_without_differences(
    make_record: Callable[..., TopicRecord], make_decision_response: Callable[..., DecisionResponse]
) -> None:
    record = make_record()
    response = make_decision_response()

    diff = compute_diff(response, response, record, record)

    assert diff.status is DiffStatus.COMPARED
    assert not diff.has_differences
    assert diff.outcome is None and diff.confidence is None
    assert all(d.is_empty for d in diff.set_diffs.values())


def test_diff_is_symmetric(
    make_record: Callable[..., TopicRecord], make_decision_response: Callable[..., DecisionResponse]
) -> None:
    record = make_record()
    a = make_decision_response(outcome="book", confidence=0.8, gains=("Dry weather", "Migration"))
    b = make_decision_response(outcome="wait", confidence=0.55, gains=("Dry weather", "Lower prices"))

    forward = compute_diff(a, b, record, record)
    backward = compute_diff(b, a, record, record)

    assert forward.outcome is not None and backward.outcome is not None
    assert (forward.outcome.value_a, forward.outcome.value_b) == (backward.outcome.value_b, backward.outcome.value_a)
    for name, d in forward.set_diffs.items():
        assert d.only_in_a == backward.set_diffs[name].only_in_b, name
        assert d.only_in_b == backward.set_diffs[name].only_in_a, name


def test_outcome_confidence_and_tradeoff_changes(
    make_record: Callable[..., TopicRecord], make_decision_response: Callable[..., DecisionResponse]
) -> None:
    record = make_record()
    a = make_decision_response(outcome="book", confidence=0.8, gains=("Dry weather", "Migration"))
    b = make_decision_response(outcome="wait", confidence=0.55, gains=("Dry weather", "Lower prices"))

    diff = compute_diff(a, b, record, record, labels=("July", "October"))

    assert diff.has_differences
    assert diff.labels == ("July", "October")
    assert diff.outcome is not None and (diff.outcome.value_a, diff.outcome.value_b) == ("book", "wait")
    assert diff.confidence is not None and (diff.confidence.value_a, diff.confidence.value_b) == ("80%", "55%")
    assert diff.gains.only_in_a == ("Migration",)
    assert diff.gains.only_in_b == ("Lower prices",)
    assert "Those ready to commit with current constraints" in diff.fit.only_in_a
    assert "Travelers with fixed, immovable dates" in diff.misfit.only_in_b


def test_any_confidence_change_is_reported(
    make_record: Callable[..., TopicRecord], make_decision_response: Callable[..., DecisionResponse]
) -> None:
    record = make_record()

    diff = compute_diff(
        make_decision_response(confidence=0.75), make_decision_response(confidence=0.76), record, record
    )

    assert diff.has_differences
    assert diff.confidence is not None and (diff.confidence.value_a, diff.confidence.value_b) == ("75%", "76%")


def test_refusal_on_either_side_skips_the_comparison(
    make_record: Callable[..., TopicRecord],
    make_decision_response: Callable[..., DecisionResponse],
    make_refusal_response: Callable[..., DecisionResponse],
) -> None:
    record = make_record()

    diff = compute_diff(make_decision_response(), make_refusal_response(), record, record)

    assert diff.status is DiffStatus.SKIPPED
    assert not diff.has_differences
    assert diff.skip_reason == "no decision to compare for B"


def test_string_set_diff_collapses_duplicates_and_keeps_order() -> None:
    result = diff_string_sets(["x", "a", "x", "b"], ["b", "c", "c"])

    assert result.only_in_a == ("x", "a")
    assert result.only_in_b == ("c",)


def test_string_set_diff_is_exact() -> None:
    result = diff_string_sets(["Dry weather"], ["dry weather"])

    assert result.only_in_a == ("Dry weather",)
    assert result.only_in_b == ("dry weather",)


def test_format_confidence_rounds_to_a_percentage() -> None:
    assert format_confidence(0.756) == "76%"
    assert format_confidence(0.0) == "0%"
    assert format_confidence(1.0) == "100%"


def test_close_confidences_render_differently(
    make_record: Callable[..., TopicRecord], make_decision_response: Callable[..., DecisionResponse]
) -> None:
    record = make_record()

    diff = compute_diff(
        make_decision_response(confidence=0.801), make_decision_response(confidence=0.804), record, record
    )

    assert diff.confidence is not None
    assert (diff.confidence.value_a, diff.confidence.value_b) == ("80.1%", "80.4%")
