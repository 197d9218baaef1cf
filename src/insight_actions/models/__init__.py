"""
Data models for the Insight Action engine.
"""

from .action import Action, ActionSource, ActionStatus, ActionType, ProposedAction
from .analysis import (
    AnalysisResult,
    LegacyAnalysis,
    SchedulingIntent,
    StageSuggestion,
    Stakeholder,
    StructuredActionItem,
    StructuredAnalysis,
    SummaryBlock,
    detect_schema_kind,
    empty_analysis,
    parse_analysis,
)
from .entities import Deal, DealStage, DealStatus, Meeting

__all__ = [
    'Action',
    'ActionSource',
    'ActionStatus',
    'ActionType',
    'ProposedAction',
    'AnalysisResult',
    'LegacyAnalysis',
    'SchedulingIntent',
    'StageSuggestion',
    'Stakeholder',
    'StructuredActionItem',
    'StructuredAnalysis',
    'SummaryBlock',
    'detect_schema_kind',
    'empty_analysis',
    'parse_analysis',
    'Deal',
    'DealStage',
    'DealStatus',
    'Meeting',
]
