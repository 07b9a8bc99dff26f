# topic_bridge/contracts.py
from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from typing_extensions import Self


class StrEnum(str, Enum):  # noqa: UP042
    """Python 3.10-compatible StrEnum."""

    pass


# ------------------------------------------------------------------------------
# Error taxonomy
# ------------------------------------------------------------------------------


class TopicBridgeError(ValueError):
    """Base class for errors raised at the edges of the bridge."""


class CatalogError(TopicBridgeError):
    """Raised when the input catalog is malformed or an override would move a key path."""


class DefinitionLoadError(TopicBridgeError):
    """Raised when a topic definition file cannot be resolved against the catalog."""


class SlugCollisionError(TopicBridgeError):
    """Raised when two topic ids compile to the same slug."""

    def __init__(self, collisions: Mapping[str, list[str]]) -> None:
        self.collisions = {slug: list(ids) for slug, ids in collisions.items()}
        rendered = ", ".join(f"{slug} <- {ids}" for slug, ids in sorted(self.collisions.items()))
        super().__init__(f"slug collision: {rendered}")


class RequestContractError(TopicBridgeError):
    """Raised when overrides would produce an invalid request contract."""


class ResponseContractError(TopicBridgeError):
    """Raised when a decision-service payload does not match the response contract."""


# ------------------------------------------------------------------------------
# Shared BaseModel config helpers
# ------------------------------------------------------------------------------

_CONTRACT_CONFIG = ConfigDict(
    extra="forbid",
    validate_assignment=True,
    use_enum_values=False,  # keep enums as enums in Python
)

_IMMUTABLE_CONTRACT_CONFIG = ConfigDict(
    extra="forbid",
    use_enum_values=False,
    frozen=True,
)

# Service responses may grow fields we do not read.
_INBOUND_CONTRACT_CONFIG = ConfigDict(
    extra="ignore",
    use_enum_values=False,
    frozen=True,
)


# ------------------------------------------------------------------------------
# Input catalog
# ------------------------------------------------------------------------------


class InputType(StrEnum):
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ENUM = "enum"
    ARRAY = "array"


class CatalogInput(BaseModel):
    """Canonical, reusable input descriptor. `key` is the field's path in the request contract."""

    model_config = _IMMUTABLE_CONTRACT_CONFIG

    name: str = Field(min_length=1)
    key: str = Field(min_length=1)
    label: str
    description: str
    example: str
    type: InputType
    allowed_values: tuple[str, ...] | None = Field(
        default=None, validation_alias=AliasChoices("allowed_values", "options")
    )
    notes: str | None = None


class RuntimeInput(BaseModel):
    """Type-stripped input carried by topic definitions and compiled records."""

    model_config = _IMMUTABLE_CONTRACT_CONFIG

    key: str
    label: str
    description: str
    example: str


# ------------------------------------------------------------------------------
# Topic definitions (authoring time)
# ------------------------------------------------------------------------------


class Outcome(StrEnum):
    BOOK = "book"
    WAIT = "wait"
    SWITCH = "switch"
    DISCARD = "discard"


class TravelerSegment(StrEnum):
    FIRST_TIME = "first_time"
    SOLO = "solo"
    FAMILIES = "families"
    MULTIGENERATIONAL = "multigenerational"
    COUPLES = "couples"
    HONEYMOON = "honeymoon"
    BUDGET_CONSCIOUS = "budget_conscious"
    LUXURY = "luxury"
    REPEAT = "repeat"


class DecisionComplexity(StrEnum):
    BINARY = "binary"
    CONDITIONAL = "conditional"
    MULTI_FACTOR = "multi-factor"


class LaunchPriority(StrEnum):
    P0 = "P0"
    P1 = "P1"
    P2 = "P2"


class SeoIntent(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TopicBucket(StrEnum):
    PERSONAL_FIT = "personal_fit"
    DESTINATION_CHOICE = "destination_choice"
    TIMING = "timing"
    EXPERIENCE_TYPE = "experience_type"
    ACCOMMODATION = "accommodation"
    LOGISTICS = "logistics"
    RISK_ETHICS = "risk_ethics"
    VALUE_COST = "value_cost"


class TradeoffPair(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG

    gain: str
    loss: str


class TimeContext(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG

    month: str | None = None
    season: str | None = None


class TopicTags(BaseModel):
    """
    Explicit author metadata. Any field left unset is backfilled by the
    prose heuristics in `topic_bridge.inference` at compile time.
    """

    model_config = _IMMUTABLE_CONTRACT_CONFIG

    destinations: tuple[str, ...] | None = None
    time_context: TimeContext | None = None
    traveler_segments: tuple[TravelerSegment, ...] | None = None
    eligible_outcomes: tuple[Outcome, ...] | None = None
    default_outcome: Outcome | None = None

    def is_empty(self) -> bool:
        return all(getattr(self, name) is None for name in type(self).model_fields)


class TopicDefinition(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG

    id: str = Field(min_length=1)
    question: str = Field(min_length=1)
    published: bool = True
    decision_complexity: DecisionComplexity | None = None
    tags: TopicTags | None = None
    launch_priority: LaunchPriority = LaunchPriority.P0
    assurance_eligible: bool = True
    seo_intent: SeoIntent = SeoIntent.HIGH
    bucket: TopicBucket | None = None
    compare_enabled: bool = False
    required_inputs: tuple[RuntimeInput, ...] = ()
    optional_inputs: tuple[RuntimeInput, ...] = ()
    assumptions: tuple[str, ...] = ()
    tradeoffs: tuple[TradeoffPair, ...] = ()
    change_conditions: tuple[str, ...] = ()
    refusal_triggers: tuple[str, ...] = ()

    @property
    def all_inputs(self) -> tuple[RuntimeInput, ...]:
        return (*self.required_inputs, *self.optional_inputs)


# ------------------------------------------------------------------------------
# Topic records (compiled)
# ------------------------------------------------------------------------------


class TopicRecord(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG

    topic_id: str
    slug: str
    question: str
    context_line: str
    published: bool = True
    destinations: tuple[str, ...]
    time_context: TimeContext | None = None
    traveler_segments: tuple[TravelerSegment, ...]
    primary_risks: tuple[str, ...] = ()
    key_tradeoffs: tuple[str, ...] = ()
    eligible_outcomes: tuple[Outcome, ...]
    default_outcome: Outcome
    confidence_range: tuple[float, float]
    decision_complexity: DecisionComplexity | None = None
    launch_priority: LaunchPriority = LaunchPriority.P0
    assurance_eligible: bool = True
    seo_intent: SeoIntent = SeoIntent.HIGH
    bucket: TopicBucket | None = None
    compare_enabled: bool = False
    required_inputs: tuple[RuntimeInput, ...] = ()
    optional_inputs: tuple[RuntimeInput, ...] = ()
    assumptions: tuple[str, ...] = ()
    tradeoffs: tuple[TradeoffPair, ...] = ()
    change_conditions: tuple[str, ...] = ()
    refusal_triggers: tuple[str, ...] = ()
    source_digest: str = ""

    @field_validator("confidence_range")
    @classmethod
    def _validate_confidence_range(cls, value: tuple[float, float]) -> tuple[float, float]:
        low, high = value
        if not (0.0 <= low <= high <= 1.0):
            raise ValueError(f"confidence_range must satisfy 0 <= min <= max <= 1, got {value!r}")
        return value

    @model_validator(mode="after")
    def _validate_default_outcome(self) -> Self:
        if not self.eligible_outcomes:
            raise ValueError("eligible_outcomes must not be empty")
        if self.default_outcome not in self.eligible_outcomes:
            raise ValueError(
                f"default_outcome {self.default_outcome.value!r} is not one of the eligible outcomes"
            )
        return self


class CompileWarning(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG

    topic_id: str
    field: str
    code: str
    message: str


class CompilationResult(BaseModel):
    """Compiled record plus the ambiguities resolved while building it."""

    model_config = _IMMUTABLE_CONTRACT_CONFIG

    record: TopicRecord
    warnings: tuple[CompileWarning, ...] = ()

    @property
    def used_heuristics(self) -> bool:
        return any(w.code == "heuristic_inference" for w in self.warnings)


# ------------------------------------------------------------------------------
# Request contract (sent to the decision-evaluation service)
# ------------------------------------------------------------------------------


class Tracking(BaseModel):
    model_config = _CONTRACT_CONFIG

    session_id: str
    traveler_id: str | None = None
    lead_id: str | None = None


class DateContext(BaseModel):
    model_config = _CONTRACT_CONFIG

    type: Literal["month_year", "flexible"] = "flexible"
    month: str | None = None
    year: int | None = None


class UserContext(BaseModel):
    model_config = ConfigDict(extra="allow", validate_assignment=True)

    traveler_type: str = "first_time"
    budget_band: str = "fair_value"
    pace_preference: str = "balanced"
    drive_tolerance_hours: int | float = 4
    risk_tolerance: str = "medium"
    dates: DateContext = Field(default_factory=DateContext)
    group_size: int = 2
    prior_decisions: list[str] = Field(default_factory=list)


class RequestSection(BaseModel):
    model_config = ConfigDict(extra="allow", validate_assignment=True)

    question: str
    scope: str = "thin_edge_scope_only=true"
    destinations_considered: list[str] = Field(default_factory=list)
    constraints: dict[str, Any] = Field(default_factory=dict)


class Facts(BaseModel):
    model_config = _CONTRACT_CONFIG

    known_constraints: list[str] = Field(default_factory=list)
    known_tradeoffs: list[str] = Field(default_factory=list)
    destination_notes: list[str] = Field(default_factory=list)


class Policy(BaseModel):
    model_config = _CONTRACT_CONFIG

    must_refuse_if: list[str] = Field(default_factory=list)
    forbidden_phrases: list[str] = Field(default_factory=list)


class RequestContract(BaseModel):
    model_config = _CONTRACT_CONFIG

    task: Literal["DECISION"] = "DECISION"
    tracking: Tracking
    user_context: UserContext
    request: RequestSection
    facts: Facts = Field(default_factory=Facts)
    policy: Policy = Field(default_factory=Policy)

    def to_payload(self) -> dict[str, Any]:
        """JSON body for the decision-evaluation endpoint."""
        return self.model_dump(mode="json")


# ------------------------------------------------------------------------------
# Decision results (received from the decision-evaluation service)
# ------------------------------------------------------------------------------


class Assumption(BaseModel):
    model_config = _INBOUND_CONTRACT_CONFIG

    id: str
    text: str
    confidence: float


class Tradeoffs(BaseModel):
    model_config = _INBOUND_CONTRACT_CONFIG

    gains: tuple[str, ...] = ()
    losses: tuple[str, ...] = ()


class DecisionOutput(BaseModel):
    model_config = _INBOUND_CONTRACT_CONFIG

    outcome: Outcome
    headline: str
    summary: str
    assumptions: tuple[Assumption, ...] = ()
    tradeoffs: Tradeoffs = Field(default_factory=Tradeoffs)
    change_conditions: tuple[str, ...] = ()
    confidence: float = Field(ge=0.0, le=1.0)


class RefusalCode(StrEnum):
    SERVICE_DEGRADED = "SERVICE_DEGRADED"
    MISSING_INPUTS = "MISSING_INPUTS"
    CONFLICTING_INPUTS = "CONFLICTING_INPUTS"
    GUARANTEE_REQUESTED = "GUARANTEE_REQUESTED"


class RefusalOutput(BaseModel):
    model_config = _INBOUND_CONTRACT_CONFIG

    code: RefusalCode | None = None
    reason: str
    missing_or_conflicting_inputs: tuple[str, ...] = ()
    safe_next_step: str = ""


class DecisionOutputEnvelope(BaseModel):
    """Tagged union: exactly the branch named by `type` is populated."""

    model_config = _INBOUND_CONTRACT_CONFIG

    type: Literal["decision", "refusal"]
    decision: DecisionOutput | None = None
    refusal: RefusalOutput | None = None

    @model_validator(mode="after")
    def _validate_branch(self) -> Self:
        if self.type == "decision":
            if self.decision is None or self.refusal is not None:
                raise ValueError("decision output must carry only the decision branch")
        elif self.refusal is None or self.decision is not None:
            raise ValueError("refusal output must carry only the refusal branch")
        return self


class ResponseMetadata(BaseModel):
    model_config = _INBOUND_CONTRACT_CONFIG

    logic_version: str = ""
    ai_used: bool = False


class DecisionResponse(BaseModel):
    model_config = _INBOUND_CONTRACT_CONFIG

    decision_id: str
    output: DecisionOutputEnvelope
    metadata: ResponseMetadata = Field(default_factory=ResponseMetadata)

    @property
    def decision(self) -> DecisionOutput | None:
        return self.output.decision

    @property
    def refusal(self) -> RefusalOutput | None:
        return self.output.refusal


class ResponseObservability(BaseModel):
    """Opaque response-header values passed through for logging and display."""

    model_config = _IMMUTABLE_CONTRACT_CONFIG

    decision_id: str | None = None
    snapshot_status: str | None = None
    lock_status: str | None = None
    ai_used: bool | None = None


# ------------------------------------------------------------------------------
# Render models
# ------------------------------------------------------------------------------


class FitMisfitModel(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG

    right_for: tuple[str, ...]
    not_ideal_for: tuple[str, ...]


class OwnershipConditions(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG

    primary: str
    invalidating: str


class MissingInput(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG

    key: str
    label: str
    example: str


class RecoveryModel(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG

    reason: str | None
    known_reason: bool
    missing_inputs: tuple[MissingInput, ...] = Field(min_length=3, max_length=7)
    example_snippet: str
    safe_next_step: str = ""


# ------------------------------------------------------------------------------
# Comparison
# ------------------------------------------------------------------------------


class ValueDiff(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG

    label: str
    value_a: str | None
    value_b: str | None


class SetDiff(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG

    only_in_a: tuple[str, ...] = ()
    only_in_b: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.only_in_a and not self.only_in_b


class DiffStatus(StrEnum):
    COMPARED = "compared"
    SKIPPED = "skipped"


class DiffModel(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG

    status: DiffStatus = DiffStatus.COMPARED
    labels: tuple[str, str] = ("A", "B")
    has_differences: bool = False
    outcome: ValueDiff | None = None
    confidence: ValueDiff | None = None
    gains: SetDiff = Field(default_factory=SetDiff)
    losses: SetDiff = Field(default_factory=SetDiff)
    assumptions: SetDiff = Field(default_factory=SetDiff)
    change_conditions: SetDiff = Field(default_factory=SetDiff)
    fit: SetDiff = Field(default_factory=SetDiff)
    misfit: SetDiff = Field(default_factory=SetDiff)
    skip_reason: str | None = None

    @property
    def set_diffs(self) -> dict[str, SetDiff]:
        return {
            "gains": self.gains,
            "losses": self.losses,
            "assumptions": self.assumptions,
            "change_conditions": self.change_conditions,
            "fit": self.fit,
            "misfit": self.misfit,
        }
