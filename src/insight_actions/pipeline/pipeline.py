"""
Meeting analysis pipeline.

Provides end-to-end processing of one transcript:
1. Validate input and load the meeting (owned by the acting user)
2. Load the linked deal's current stage, if any
3. Extract signals (failure boundary, never raises)
4. Store transcript, summary, insights and participants on the meeting
5. Derive proposed actions
6. Persist each proposal as a pending AI action (per-item failures collected)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any
from uuid import UUID

from ..clients.openai_client import OpenAIClient
from ..clients.postgres_client import PostgresClient
from ..errors import (
    InsightActionsError,
    MeetingNotFoundError,
    PartialSuccessResult,
    PipelineError,
    RepositoryError,
    ValidationError,
)
from ..logging import PipelineTimer, get_logger, logging_context
from ..models.action import Action, ActionSource
from ..models.analysis import LegacyAnalysis, StructuredAnalysis
from ..models.entities import Meeting
from ..repository import CrmRepository
from ..scheduling import Clock
from .deriver import ActionDeriver
from .extractor import SignalExtractor

logger = get_logger(__name__)

NO_SUMMARY = 'No summary generated'


@dataclass
class AnalysisPipelineResult:
    """Result of analyzing one meeting transcript."""

    meeting_id: str
    user_id: str

    meeting: Meeting | None = None
    analysis: LegacyAnalysis | StructuredAnalysis | None = None
    actions: list[Action] = field(default_factory=list)
    persistence: PartialSuccessResult = field(default_factory=PartialSuccessResult)

    # Set when the extractor fell back to the empty analysis
    extraction_error: str | None = None

    # Timing
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: datetime | None = None
    processing_time_ms: int | None = None
    stage_timings: dict[str, float] = field(default_factory=dict)

    # Error tracking (for partial success)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True if pipeline completed without critical errors."""
        return len(self.errors) == 0

    @property
    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    @property
    def action_ids(self) -> list[str]:
        return [str(a.id) for a in self.actions]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            'meeting_id': self.meeting_id,
            'user_id': self.user_id,
            'analysis_kind': self.analysis.kind if self.analysis else None,
            'action_ids': self.action_ids,
            'action_types': [a.type for a in self.actions],
            'persistence': self.persistence.to_dict(),
            'extraction_error': self.extraction_error,
            'processing_time_ms': self.processing_time_ms,
            'stage_timings': self.stage_timings,
            'success': self.success,
            'errors': self.errors,
            'warnings': self.warnings,
        }


class MeetingAnalysisPipeline:
    """
    Orchestrates extraction, insight storage, derivation and action persistence.

    Usage:
        pipeline = await MeetingAnalysisPipeline.from_env()
        result = await pipeline.analyze_meeting(meeting_id, transcript, user_id)
    """

    def __init__(
        self,
        extractor: SignalExtractor,
        repository: CrmRepository,
        deriver: ActionDeriver | None = None,
        clock: Clock | None = None,
    ):
        """
        Args:
            extractor: Signal extractor (failure boundary around the LLM)
            repository: Persistence for meetings, deals and actions
            deriver: Action deriver (defaults to one on the system clock)
            clock: Time source for result timestamps (defaults to the deriver's)
        """
        self.extractor = extractor
        self.repository = repository
        self.deriver = deriver or ActionDeriver()
        self.clock = clock or self.deriver.clock

    @classmethod
    async def from_env(cls) -> MeetingAnalysisPipeline:
        """
        Create a pipeline from environment variables.

        Expects:
            LLM_API_KEY: API key for the chat endpoint
            DATABASE_URL: Postgres URL

        Returns:
            Configured and connected MeetingAnalysisPipeline
        """
        openai = OpenAIClient()
        postgres = PostgresClient()
        await postgres.connect()
        return cls(SignalExtractor(openai), CrmRepository(postgres))

    async def close(self) -> None:
        """Close all client connections."""
        await self.extractor.openai_client.close()
        await self.repository.pg.close()

    async def analyze_meeting(
        self,
        meeting_id: UUID,
        transcript: str,
        user_id: str,
        trace_id: str | None = None,
    ) -> AnalysisPipelineResult:
        """
        Analyze a transcript and stage the resulting actions.

        Args:
            meeting_id: Meeting the transcript belongs to
            transcript: Transcript text
            user_id: Acting user; must own the meeting
            trace_id: Optional trace ID for log correlation

        Returns:
            AnalysisPipelineResult with the stored meeting and pending actions

        Raises:
            ValidationError: Missing meeting_id or blank transcript
            MeetingNotFoundError: Unknown meeting or owned by another user
            PipelineError: Storing the analysis on the meeting failed
        """
        if meeting_id is None or not isinstance(transcript, str) or not transcript.strip():
            raise ValidationError(
                'Please provide meeting_id and transcript',
                context={'meeting_id': str(meeting_id) if meeting_id else None},
            )

        timer = PipelineTimer()
        result = AnalysisPipelineResult(
            meeting_id=str(meeting_id), user_id=user_id, started_at=self.clock()
        )

        with logging_context(trace_id=trace_id, user_id=user_id, meeting_id=str(meeting_id)):
            logger.info('pipeline.started', transcript_length=len(transcript))

            # Step 1: Load meeting and deal context
            with timer.stage('load_context'):
                meeting = await self.repository.get_meeting(meeting_id, user_id)
                if meeting is None:
                    raise MeetingNotFoundError(
                        'Meeting not found', context={'meeting_id': str(meeting_id)}
                    )
                current_stage = None
                if meeting.deal_id is not None:
                    deal = await self.repository.get_deal(meeting.deal_id)
                    current_stage = deal.stage if deal is not None else None

            # Step 2: Extract signals
            with timer.stage('extraction'):
                outcome = await self.extractor.extract(
                    transcript,
                    meeting_title=meeting.title,
                    current_stage=current_stage,
                )
            result.analysis = outcome.analysis
            if outcome.error is not None:
                result.extraction_error = str(outcome.error)
                result.warnings.append(f'Extraction failed, empty analysis used: {outcome.error}')

            # Step 3: Store analysis on the meeting
            with timer.stage('store_analysis'):
                try:
                    stored = await self.repository.save_analysis(
                        meeting.id,
                        transcript=transcript,
                        ai_summary=outcome.analysis.summary_text or NO_SUMMARY,
                        ai_insights=outcome.insights,
                        participants=outcome.analysis.participant_names or None,
                    )
                except RepositoryError as e:
                    logger.error('pipeline.store_analysis_failed', error=str(e))
                    result.errors.append(f'Storing analysis failed: {e}')
                    raise PipelineError(
                        f'Pipeline failed: {e}', context={'stage': 'store_analysis'}
                    ) from e
            result.meeting = stored or meeting

            # Step 4: Derive proposals
            with timer.stage('derivation'):
                proposals = self.deriver.derive(outcome.analysis, current_stage=current_stage)

            # Step 5: Persist pending actions
            with timer.stage('persist_actions'):
                for proposal in proposals:
                    action = Action.from_proposal(proposal, meeting, user_id, source=ActionSource.AI)
                    try:
                        saved = await self.repository.create_action(action)
                    except InsightActionsError as e:
                        logger.warning(
                            'pipeline.action_persist_failed',
                            action_type=action.type,
                            error=str(e),
                        )
                        result.persistence.add_failure(e, item_id=str(action.id))
                        continue
                    result.actions.append(saved)
                    result.persistence.add_success(item_id=str(saved.id), data={'type': saved.type})

            if result.persistence.failure_count:
                result.warnings.append(
                    f'{result.persistence.failure_count} of '
                    f'{result.persistence.total_count} actions failed to persist'
                )

            result.completed_at = self.clock()
            result.processing_time_ms = int(timer.total_ms)
            result.stage_timings = timer.stages.copy()

            logger.info(
                'pipeline.complete',
                analysis_kind=outcome.analysis.kind,
                actions_created=len(result.actions),
                actions_failed=result.persistence.failure_count,
                **timer.summary(),
            )
            return result
