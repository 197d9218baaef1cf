"""
Insight Action Engine

Turns AI analyses of sales-call transcripts into pending follow-up actions,
and confirms them exactly once with their side effects on meetings and deals.
"""

__version__ = '0.1.0'

# Re-export key classes for convenience
from .pipeline import (
    MeetingAnalysisPipeline,
    AnalysisPipelineResult,
    SignalExtractor,
    ExtractionOutcome,
    ActionDeriver,
    derive_actions,
    ActionConfirmationService,
    ConfirmationResult,
)
from .repository import CrmRepository
from .scheduling import resolve_scheduling_intent, system_clock
from .stages import normalize_stage, next_stage
from .logging import (
    configure_logging,
    get_logger,
    logging_context,
    PipelineTimer,
)
from .errors import (
    InsightActionsError,
    PipelineError,
    ValidationError,
    ActionNotFoundError,
    ActionAlreadyApprovedError,
    MeetingNotFoundError,
    ExtractionError,
    ReferentialIntegrityError,
    RepositoryError,
    LLMError,
    PartialSuccessResult,
)

__all__ = [
    # Version
    '__version__',
    # Main Pipeline
    'MeetingAnalysisPipeline',
    'AnalysisPipelineResult',
    # Components
    'SignalExtractor',
    'ExtractionOutcome',
    'ActionDeriver',
    'derive_actions',
    'ActionConfirmationService',
    'ConfirmationResult',
    # Resolvers
    'resolve_scheduling_intent',
    'system_clock',
    'normalize_stage',
    'next_stage',
    # Repository
    'CrmRepository',
    # Logging
    'configure_logging',
    'get_logger',
    'logging_context',
    'PipelineTimer',
    # Errors
    'InsightActionsError',
    'PipelineError',
    'ValidationError',
    'ActionNotFoundError',
    'ActionAlreadyApprovedError',
    'MeetingNotFoundError',
    'ExtractionError',
    'ReferentialIntegrityError',
    'RepositoryError',
    'LLMError',
    'PartialSuccessResult',
]
