"""
AnalysisResult models for the two extractor schema versions.

The extractor returns one of two JSON shapes:
- Legacy (flat): summary string, single-field signals such as
  schedulingIntent / nextStep / dealStageSuggestion
- Structured v2: nested summary/stage blocks and an explicit ``actions`` array

parse_analysis() tags the payload once (``kind``) and validates it into a
LegacyAnalysis or StructuredAnalysis, so downstream code never has to guess
which shape it holds. Both variants expose the same read helpers the deriver
and pipeline use (summary_text, stage_suggestion_text, participant_names).

Field names follow Python conventions; the JSON camelCase names are aliases.
Extractor output is loosely typed, so list fields accept null and unknown
keys are ignored. Metadata the engine never reads (confidence, reasoning,
roles, intent scores) is left untyped so one odd value cannot reject a reply.
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator
from pydantic import ValidationError as PydanticValidationError

from ..errors import ExtractionError

_MODEL_CONFIG = {'populate_by_name': True, 'extra': 'ignore', 'frozen': True}

# Keys that only appear in the structured v2 contract
_STRUCTURED_MARKERS = ('actions', 'stakeholders', 'intentScore')


def _none_to_list(value: Any) -> Any:
    return [] if value is None else value


def _names(values: list[Any]) -> list[str]:
    names = []
    for value in values:
        if isinstance(value, str):
            name = value
        elif isinstance(value, dict):
            name = value.get('name')
        else:
            name = getattr(value, 'name', None)
        if isinstance(name, str) and name.strip():
            names.append(name.strip())
    return names


class SchedulingIntent(BaseModel):
    """Structured form of a scheduling intent: ``{title, dateTime}``."""

    title: str | None = None
    date_time: str | None = Field(default=None, alias='dateTime')

    model_config = _MODEL_CONFIG


class StageSuggestion(BaseModel):
    """v2 ``dealStageSuggestion`` block. ``stage`` is free text until normalized."""

    stage: str | None = None
    reasoning: Any = None
    confidence: Any = None

    model_config = _MODEL_CONFIG


class SummaryBlock(BaseModel):
    text: str | None = None
    confidence: Any = None

    model_config = _MODEL_CONFIG


class Stakeholder(BaseModel):
    name: Any = None
    role: Any = None
    evidence: Any = None
    confidence: Any = None

    model_config = _MODEL_CONFIG


class StructuredActionItem(BaseModel):
    """One entry of the v2 ``actions`` array."""

    type: str | None = None
    title: str | None = None
    date_time: str | None = Field(default=None, alias='dateTime')
    proposed_stage: str | None = Field(default=None, alias='proposedStage')
    evidence: str | None = None
    confidence: Any = None

    model_config = _MODEL_CONFIG

    @field_validator('evidence', mode='before')
    @classmethod
    def drop_non_text_evidence(cls, value: Any) -> Any:
        return value if isinstance(value, str) else None


def _stage_text(suggestion: StageSuggestion | str | None) -> str | None:
    if isinstance(suggestion, StageSuggestion):
        return suggestion.stage
    return suggestion


class LegacyAnalysis(BaseModel):
    """Flat extractor output."""

    kind: Literal['legacy'] = 'legacy'

    summary: str | None = None
    participants: list[Any] = Field(default_factory=list)
    key_topics: list[Any] = Field(default_factory=list, alias='keyTopics')
    next_step: str | None = Field(default=None, alias='nextStep')
    objection: Any = None
    intent: Any = None
    timeline: Any = None
    risk_signals: list[Any] = Field(default_factory=list, alias='riskSignals')
    scheduling_intent: SchedulingIntent | str | None = Field(
        default=None, alias='schedulingIntent'
    )
    deal_signal: str | None = Field(default=None, alias='dealSignal')
    deal_stage_suggestion: StageSuggestion | str | None = Field(
        default=None, alias='dealStageSuggestion'
    )

    model_config = _MODEL_CONFIG

    @field_validator('participants', 'key_topics', 'risk_signals', mode='before')
    @classmethod
    def empty_list_when_null(cls, value: Any) -> Any:
        return _none_to_list(value)

    @property
    def summary_text(self) -> str | None:
        return self.summary

    @property
    def stage_suggestion_text(self) -> str | None:
        return _stage_text(self.deal_stage_suggestion)

    @property
    def participant_names(self) -> list[str]:
        return _names(self.participants)


class StructuredAnalysis(BaseModel):
    """
    Structured v2 extractor output.

    The legacy single-field signals are kept as optional fields because
    models sometimes mix both shapes in one response; the deriver only reads
    them when ``actions`` is empty.
    """

    kind: Literal['structured'] = 'structured'

    summary: SummaryBlock | str | None = None
    stakeholders: list[Stakeholder | str] = Field(default_factory=list)
    budget: Any = None
    timeline: Any = None
    objections: list[Any] = Field(default_factory=list)
    risk_signals: list[Any] = Field(default_factory=list, alias='riskSignals')
    competitors_mentioned: list[Any] = Field(default_factory=list, alias='competitorsMentioned')
    intent_score: Any = Field(default=None, alias='intentScore')
    actions: list[StructuredActionItem] = Field(default_factory=list)
    deal_signal: str | None = Field(default=None, alias='dealSignal')
    deal_stage_suggestion: StageSuggestion | str | None = Field(
        default=None, alias='dealStageSuggestion'
    )

    # Legacy signals occasionally present in mixed payloads
    participants: list[Any] = Field(default_factory=list)
    next_step: str | None = Field(default=None, alias='nextStep')
    scheduling_intent: SchedulingIntent | str | None = Field(
        default=None, alias='schedulingIntent'
    )

    model_config = _MODEL_CONFIG

    @field_validator(
        'stakeholders',
        'objections',
        'risk_signals',
        'competitors_mentioned',
        'actions',
        'participants',
        mode='before',
    )
    @classmethod
    def empty_list_when_null(cls, value: Any) -> Any:
        return _none_to_list(value)

    @property
    def summary_text(self) -> str | None:
        if isinstance(self.summary, SummaryBlock):
            return self.summary.text
        return self.summary

    @property
    def stage_suggestion_text(self) -> str | None:
        return _stage_text(self.deal_stage_suggestion)

    @property
    def participant_names(self) -> list[str]:
        return _names(self.stakeholders) or _names(self.participants)


AnalysisResult = Annotated[
    Union[LegacyAnalysis, StructuredAnalysis],
    Field(discriminator='kind'),
]

_analysis_adapter: TypeAdapter[LegacyAnalysis | StructuredAnalysis] = TypeAdapter(AnalysisResult)


def detect_schema_kind(payload: dict[str, Any]) -> str:
    """Return ``'structured'`` for v2 payloads, ``'legacy'`` otherwise."""
    if any(key in payload for key in _STRUCTURED_MARKERS):
        return 'structured'
    if isinstance(payload.get('summary'), dict):
        return 'structured'
    return 'legacy'


def parse_analysis(payload: Any) -> LegacyAnalysis | StructuredAnalysis:
    """
    Resolve an extractor payload into its tagged variant.

    Args:
        payload: Decoded JSON object (or an already-parsed analysis)

    Returns:
        LegacyAnalysis or StructuredAnalysis

    Raises:
        ExtractionError: If the payload is not an object or fails validation
    """
    if isinstance(payload, (LegacyAnalysis, StructuredAnalysis)):
        return payload
    if not isinstance(payload, dict):
        raise ExtractionError(
            'Analysis payload must be a JSON object',
            context={'payload_type': type(payload).__name__},
        )

    kind = detect_schema_kind(payload)
    try:
        return _analysis_adapter.validate_python({**payload, 'kind': kind})
    except PydanticValidationError as exc:
        raise ExtractionError(
            f'Analysis payload does not match the {kind} schema',
            context={'kind': kind, 'error_count': exc.error_count()},
        ) from exc


def empty_analysis() -> LegacyAnalysis:
    """Neutral result substituted when extraction fails. Derives no actions."""
    return LegacyAnalysis(
        summary='Error analyzing transcript',
        participants=[],
        key_topics=[],
        next_step=None,
        objection=None,
        intent='Unknown',
        timeline=None,
        risk_signals=[],
        scheduling_intent=None,
        deal_signal='Neutral',
    )
