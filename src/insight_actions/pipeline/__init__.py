"""
Pipeline components for signal extraction, action derivation and confirmation.
"""

from .confirmation import ActionConfirmationService, ConfirmationResult
from .deriver import ActionDeriver, derive_actions
from .extractor import ExtractionOutcome, SignalExtractor
from .pipeline import AnalysisPipelineResult, MeetingAnalysisPipeline

__all__ = [
    # Main Pipeline
    'MeetingAnalysisPipeline',
    'AnalysisPipelineResult',
    # Extraction
    'SignalExtractor',
    'ExtractionOutcome',
    # Derivation
    'ActionDeriver',
    'derive_actions',
    # Confirmation
    'ActionConfirmationService',
    'ConfirmationResult',
]
