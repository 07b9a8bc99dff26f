from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any

import pytest

from topic_bridge.catalog import InputCatalog, default_catalog
from topic_bridge.compiler import compile_topic, compile_topics
from topic_bridge.contracts import (
    CompilationResult,
    DecisionComplexity,
    DecisionResponse,
    RuntimeInput,
    TopicDefinition,
    TopicRecord,
    TopicTags,
    TradeoffPair,
)
from topic_bridge.definitions import TopicDefinitionSet, default_definitions
from topic_bridge.settings import BridgeSettings


@pytest.fixture
def catalog() -> InputCatalog:
    return default_catalog()


@pytest.fixture
def definitions() -> TopicDefinitionSet:
    return default_definitions()


@pytest.fixture
def compiled(definitions: TopicDefinitionSet) -> list[CompilationResult]:
    return compile_topics(definitions)


@pytest.fixture
def records_by_id(compiled: list[CompilationResult]) -> dict[str, TopicRecord]:
    return {r.record.topic_id: r.record for r in compiled}


@pytest.fixture
def settings() -> BridgeSettings:
    return BridgeSettings(_env_file=None)


@pytest.fixture
def make_runtime_input() -> Callable[..., RuntimeInput]:
    def _make_runtime_input(
        key: str = "user_context.budget_band",
        *,
        label: str | None = None,
        description: str = "test input",
        example: str = "fair_value",
    ) -> RuntimeInput:
        return RuntimeInput(
            key=key,
            label=label if label is not None else key.rsplit(".", 1)[-1].replace("_", " ").title(),
            description=description,
            example=example,
        )

    return _make_runtime_input


@pytest.fixture
def make_definition(make_runtime_input: Callable[..., RuntimeInput]) -> Callable[..., TopicDefinition]:
    def _make_definition(
        topic_id: str = "test-topic",
        *,
        question: str = "Is this a good idea?",
        published: bool = True,
        complexity: DecisionComplexity | None = None,
        tags: TopicTags | None = None,
        required: Sequence[RuntimeInput] | None = None,
        optional: Sequence[RuntimeInput] = (),
        refusal_triggers: Sequence[str] = ("Budget not provided", "Dates not provided"),
        tradeoffs: Sequence[TradeoffPair] = (TradeoffPair(gain="Fewer crowds", loss="More rain"),),
        change_conditions: Sequence[str] = ("If dates are fixed, book now",),
    ) -> TopicDefinition:
        if required is None:
            required = (
                make_runtime_input("user_context.budget_band", label="Budget tier", example="fair_value"),
                make_runtime_input("user_context.dates.month", label="Travel month", example="July"),
            )
        return TopicDefinition(
            id=topic_id,
            question=question,
            published=published,
            decision_complexity=complexity,
            tags=tags,
            required_inputs=tuple(required),
            optional_inputs=tuple(optional),
            assumptions=("Wildlife is never guaranteed",),
            tradeoffs=tuple(tradeoffs),
            change_conditions=tuple(change_conditions),
            refusal_triggers=tuple(refusal_triggers),
        )

    return _make_definition


@pytest.fixture
def make_record(make_definition: Callable[..., TopicDefinition]) -> Callable[..., TopicRecord]:
    def _make_record(topic_id: str = "test-topic", **kwargs: Any) -> TopicRecord:
        return compile_topic(make_definition(topic_id, **kwargs)).record

    return _make_record


@pytest.fixture
def make_decision_response() -> Callable[..., DecisionResponse]:
    def _make_decision_response(
        *,
        decision_id: str = "dec_test",
        outcome: str = "book",
        confidence: float = 0.75,
        gains: Sequence[str] = ("Dry weather",),
        losses: Sequence[str] = ("Peak pricing",),
        assumptions: Sequence[str] = ("Travel in July",),
        change_conditions: Sequence[str] = ("If budget drops, wait",),
    ) -> DecisionResponse:
        return DecisionResponse.model_validate(
            {
                "decision_id": decision_id,
                "output": {
                    "type": "decision",
                    "decision": {
                        "outcome": outcome,
                        "headline": "Book it",
                        "summary": "Conditions favor booking.",
                        "assumptions": [
                            {"id": f"a{i}", "text": text, "confidence": 0.8}
                            for i, text in enumerate(assumptions, start=1)
                        ],
                        "tradeoffs": {"gains": list(gains), "losses": list(losses)},
                        "change_conditions": list(change_conditions),
                        "confidence": confidence,
                    },
                },
                "metadata": {"logic_version": "test", "ai_used": False},
            }
        )

    return _make_decision_response


@pytest.fixture
def make_refusal_response() -> Callable[..., DecisionResponse]:
    def _make_refusal_response(
        *,
        reason: str = "missing_material_inputs",
        code: str | None = None,
        missing: Sequence[str] = ("user_context.dates.month",),
        safe_next_step: str = "Tell us when you plan to travel.",
    ) -> DecisionResponse:
        refusal: dict[str, Any] = {
            "reason": reason,
            "missing_or_conflicting_inputs": list(missing),
            "safe_next_step": safe_next_step,
        }
        if code is not None:
            refusal["code"] = code
        return DecisionResponse.model_validate(
            {"decision_id": "dec_refused", "output": {"type": "refusal", "refusal": refusal}}
        )

    return _make_refusal_response
