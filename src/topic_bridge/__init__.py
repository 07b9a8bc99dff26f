"""
Topic compilation and decision-contract bridge.

Catalog -> definitions -> compiled topic records -> request contract, and the
render models derived from decision-service responses.
"""

from topic_bridge.catalog import InputCatalog, default_catalog, load_input_catalog, to_runtime_input
from topic_bridge.compiler import compile_records, compile_topic, compile_topics, generate_slug
from topic_bridge.contracts import (
    CatalogError,
    DecisionResponse,
    DefinitionLoadError,
    DiffModel,
    Outcome,
    RequestContract,
    RequestContractError,
    ResponseContractError,
    SlugCollisionError,
    TopicBridgeError,
    TopicDefinition,
    TopicRecord,
    TopicTags,
)
from topic_bridge.coverage import CoverageReport, verify_coverage
from topic_bridge.definitions import TopicDefinitionSet, default_definitions, load_topic_definitions
from topic_bridge.diff import compute_diff, diff_string_sets
from topic_bridge.envelope import apply_overrides, build_overrides_from_inputs, build_request_contract
from topic_bridge.recovery import build_example_snippet, build_recovery_model, get_missing_inputs
from topic_bridge.render import derive_fit_misfit, parse_decision_response, read_response_observability

__all__ = [
    "CatalogError",
    "CoverageReport",
    "DecisionResponse",
    "DefinitionLoadError",
    "DiffModel",
    "InputCatalog",
    "Outcome",
    "RequestContract",
    "RequestContractError",
    "ResponseContractError",
    "SlugCollisionError",
    "TopicBridgeError",
    "TopicDefinition",
    "TopicDefinitionSet",
    "TopicRecord",
    "TopicTags",
    "apply_overrides",
    "build_example_snippet",
    "build_overrides_from_inputs",
    "build_recovery_model",
    "build_request_contract",
    "compile_records",
    "compile_topic",
    "compile_topics",
    "compute_diff",
    "default_catalog",
    "default_definitions",
    "derive_fit_misfit",
    "diff_string_sets",
    "generate_slug",
    "get_missing_inputs",
    "load_input_catalog",
    "load_topic_definitions",
    "parse_decision_response",
    "read_response_observability",
    "to_runtime_input",
    "verify_coverage",
]
