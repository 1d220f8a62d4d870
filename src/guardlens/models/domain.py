"""Typed projections of the governance service's request and response bodies."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RuleType(str, Enum):
    KEYWORD = "KeywordRule"
    MODEL_HALLUCINATION_V2 = "ModelHallucinationRuleV2"
    MODEL_SENSITIVE_DATA = "ModelSensitiveDataRule"
    PII_DATA = "PIIDataRule"
    PROMPT_INJECTION = "PromptInjectionRule"
    REGEX = "RegexRule"
    TOXICITY = "ToxicityRule"


class RuleScope(str, Enum):
    DEFAULT = "default"
    TASK = "task"


class RuleResultEnum(str, Enum):
    PASS = "Pass"
    FAIL = "Fail"
    SKIPPED = "Skipped"
    UNAVAILABLE = "Unavailable"
    PARTIALLY_UNAVAILABLE = "Partially Unavailable"
    MODEL_NOT_AVAILABLE = "Model Not Available"


class InferenceFeedbackTarget(str, Enum):
    CONTEXT = "context"
    RESPONSE_RESULTS = "response_results"
    PROMPT_RESULTS = "prompt_results"


class PaginationSortMethod(str, Enum):
    ASC = "asc"
    DESC = "desc"


# Values the server may extend later; unknown strings are kept as plain str.
ResultValue = Annotated[Union[RuleResultEnum, str], Field(union_mode="left_to_right")]
RuleTypeValue = Annotated[Union[RuleType, str], Field(union_mode="left_to_right")]
ScopeValue = Annotated[Union[RuleScope, str], Field(union_mode="left_to_right")]


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


# ---------------------------------------------------------------------------
# Rule details: tagged at parse time from whichever optional field is present
# ---------------------------------------------------------------------------


class DetailKind(str, Enum):
    KEYWORD = "keyword"
    REGEX = "regex"
    CLAIMS = "claims"
    PII = "pii"
    TOXICITY = "toxicity"
    BASE = "base"


class KeywordSpan(_Frozen):
    keyword: str


class RegexSpan(_Frozen):
    matching_text: str
    pattern: Optional[str] = None


class HallucinationClaim(_Frozen):
    claim: str
    valid: bool
    reason: str = ""
    order_number: Optional[int] = None


class PIIEntitySpan(_Frozen):
    entity: str
    span: str
    confidence: Optional[float] = None


class _DetailsBase(_Frozen):
    score: Optional[bool] = None
    message: Optional[str] = None


class BaseDetails(_DetailsBase):
    kind: Literal["base"] = "base"


class KeywordDetails(_DetailsBase):
    kind: Literal["keyword"] = "keyword"
    keyword_matches: list[KeywordSpan]


class RegexDetails(_DetailsBase):
    kind: Literal["regex"] = "regex"
    regex_matches: list[RegexSpan]


class HallucinationDetails(_DetailsBase):
    kind: Literal["claims"] = "claims"
    claims: list[HallucinationClaim]


class PIIDetails(_DetailsBase):
    kind: Literal["pii"] = "pii"
    pii_entities: list[PIIEntitySpan]


class ToxicityDetails(_DetailsBase):
    kind: Literal["toxicity"] = "toxicity"
    toxicity_score: float
    toxicity_violation_type: Optional[str] = None


RuleDetails = Annotated[
    Union[KeywordDetails, RegexDetails, HallucinationDetails, PIIDetails, ToxicityDetails, BaseDetails],
    Field(discriminator="kind"),
]

# Checked in order; the first populated field decides the kind.
_DETAIL_FIELDS: tuple[tuple[str, DetailKind], ...] = (
    ("keyword_matches", DetailKind.KEYWORD),
    ("regex_matches", DetailKind.REGEX),
    ("claims", DetailKind.CLAIMS),
    ("pii_entities", DetailKind.PII),
    ("toxicity_score", DetailKind.TOXICITY),
)


def detect_detail_kind(raw: dict[str, Any]) -> DetailKind:
    """Work out which details variant a raw server payload carries."""
    for field_name, kind in _DETAIL_FIELDS:
        value = raw.get(field_name)
        if value is None:
            continue
        if isinstance(value, list) and not value:
            continue
        return kind
    return DetailKind.BASE


class RuleResult(_Frozen):
    id: str
    name: str
    rule_type: RuleTypeValue
    scope: ScopeValue
    result: ResultValue
    latency_ms: float = 0
    details: Optional[RuleDetails] = None

    @field_validator("details", mode="before")
    @classmethod
    def _tag_details(cls, value: Any) -> Any:
        if isinstance(value, dict) and "kind" not in value:
            return {**value, "kind": detect_detail_kind(value).value}
        return value


# ---------------------------------------------------------------------------
# Inferences
# ---------------------------------------------------------------------------


class InferenceFeedback(_Frozen):
    id: str
    inference_id: str
    target: InferenceFeedbackTarget
    score: float
    reason: Optional[str] = None
    user_id: Optional[str] = None
    created_at: str
    updated_at: str


class InferencePrompt(_Frozen):
    id: str
    inference_id: str
    result: ResultValue
    created_at: float
    updated_at: float
    message: str
    prompt_rule_results: list[RuleResult] = Field(default_factory=list)
    tokens: Optional[int] = None


class InferenceResponse(_Frozen):
    id: str
    inference_id: str
    result: ResultValue
    created_at: float
    updated_at: float
    message: str
    context: Optional[str] = None
    response_rule_results: list[RuleResult] = Field(default_factory=list)
    tokens: Optional[int] = None


class Inference(_Frozen):
    id: str
    result: ResultValue
    created_at: float
    updated_at: float
    task_id: Optional[str] = None
    task_name: Optional[str] = None
    conversation_id: Optional[str] = None
    inference_prompt: InferencePrompt
    inference_response: Optional[InferenceResponse] = None
    inference_feedback: list[InferenceFeedback] = Field(default_factory=list)
    user_id: Optional[str] = None


class QueryInferencesResponse(_Frozen):
    count: int = 0
    inferences: list[Inference] = Field(default_factory=list)


class QueryInferencesParams(_Frozen):
    """Filters for GET /api/v2/inferences/query. Field order is wire order."""

    task_ids: Optional[list[str]] = None
    task_name: Optional[str] = None
    conversation_id: Optional[str] = None
    inference_id: Optional[str] = None
    user_id: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    rule_types: Optional[list[RuleType]] = None
    rule_statuses: Optional[list[RuleResultEnum]] = None
    prompt_statuses: Optional[list[RuleResultEnum]] = None
    response_statuses: Optional[list[RuleResultEnum]] = None
    page: Optional[int] = Field(default=None, ge=0)
    page_size: Optional[int] = None
    include_count: Optional[bool] = None
    sort: Optional[PaginationSortMethod] = None


# ---------------------------------------------------------------------------
# Tasks and rules
# ---------------------------------------------------------------------------


class KeywordsConfig(_Frozen):
    keywords: list[str]


class RegexConfig(_Frozen):
    regex_patterns: list[str]


class ExampleConfig(_Frozen):
    example: str
    result: bool


class ExamplesConfig(_Frozen):
    examples: list[ExampleConfig]
    hint: Optional[str] = None


class ToxicityConfig(_Frozen):
    threshold: Optional[float] = None


class PIIConfig(_Frozen):
    disabled_pii_entities: Optional[list[str]] = None
    confidence_threshold: Optional[float] = None
    allow_list: Optional[list[str]] = None


RuleConfig = Union[KeywordsConfig, RegexConfig, ExamplesConfig, ToxicityConfig, PIIConfig]


class Rule(_Frozen):
    id: str
    name: str
    type: RuleTypeValue
    apply_to_prompt: bool
    apply_to_response: bool
    enabled: Optional[bool] = None
    scope: ScopeValue
    created_at: float
    updated_at: float
    # Shapes overlap (every field optional on some configs), so keep it raw.
    config: Optional[dict[str, Any]] = None


class Task(_Frozen):
    id: str
    name: str
    created_at: float
    updated_at: float
    rules: list[Rule] = Field(default_factory=list)


class NewTaskRequest(_Frozen):
    name: str


class NewRuleRequest(_Frozen):
    name: str
    type: str
    apply_to_prompt: bool
    apply_to_response: bool
    config: Optional[RuleConfig] = None


class UpdateRuleRequest(_Frozen):
    enabled: bool


class PromptValidationRequest(_Frozen):
    prompt: str
    conversation_id: Optional[str] = None
    user_id: Optional[str] = None


class ResponseValidationRequest(_Frozen):
    response: str
    context: Optional[str] = None


class ValidationResult(_Frozen):
    inference_id: Optional[str] = None
    rule_results: Optional[list[RuleResult]] = None
    user_id: Optional[str] = None
