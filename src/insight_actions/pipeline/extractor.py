"""
Signal extraction service.

Sends a transcript to the chat endpoint in JSON mode and resolves the reply
into a tagged AnalysisResult. The extractor is a failure boundary: timeouts,
transport errors, malformed JSON and schema mismatches are logged and
replaced by the neutral empty analysis, so callers always get a result.
"""

import asyncio
from dataclasses import dataclass
from typing import Any

from tenacity import RetryError

from ..clients.openai_client import OpenAIClient
from ..config import config
from ..errors import ExtractionError, InsightActionsError, wrap_llm_error
from ..logging import get_logger
from ..models.analysis import (
    LegacyAnalysis,
    StructuredAnalysis,
    empty_analysis,
    parse_analysis,
)
from ..prompts.extract_signals import build_extraction_prompt

logger = get_logger(__name__)


@dataclass
class ExtractionOutcome:
    """Output from one analysis pass."""

    analysis: LegacyAnalysis | StructuredAnalysis
    raw: dict[str, Any] | None = None
    error: InsightActionsError | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    @property
    def insights(self) -> dict[str, Any]:
        """Payload stored as the meeting's ai_insights blob."""
        if self.raw is not None:
            return self.raw
        return self.analysis.model_dump(by_alias=True, exclude={'kind'})


class SignalExtractor:
    """
    Extracts deal signals from transcripts.

    Uses the OpenAI-compatible chat client in JSON mode.
    """

    def __init__(self, openai_client: OpenAIClient, timeout_seconds: float | None = None):
        """
        Initialize the extractor.

        Args:
            openai_client: Configured chat client
            timeout_seconds: Upper bound for one analysis pass
                             (defaults to EXTRACTION_TIMEOUT_SECONDS)
        """
        self.openai_client = openai_client
        self.timeout_seconds = timeout_seconds or config.EXTRACTION_TIMEOUT_SECONDS

    async def extract(
        self,
        transcript: str,
        meeting_title: str | None = None,
        current_stage: str | None = None,
    ) -> ExtractionOutcome:
        """
        Run one analysis pass. Never raises.

        Args:
            transcript: Transcript text
            meeting_title: Optional meeting title for context
            current_stage: Optional current deal stage for context

        Returns:
            ExtractionOutcome; on failure ``analysis`` is the empty analysis
            and ``error`` carries the cause
        """
        messages = build_extraction_prompt(
            transcript_text=transcript,
            meeting_title=meeting_title,
            current_stage=current_stage,
        )

        try:
            raw = await asyncio.wait_for(
                self.openai_client.chat_completion_json(messages),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            error = ExtractionError(
                'Signal extraction timed out',
                context={'timeout_seconds': self.timeout_seconds},
            )
            return self._fallback(error)
        except RetryError as e:
            cause = e.last_attempt.exception() or e
            return self._fallback(wrap_llm_error(cause, {'attempts': e.last_attempt.attempt_number}))
        except Exception as e:
            return self._fallback(wrap_llm_error(e))

        try:
            analysis = parse_analysis(raw)
        except ExtractionError as e:
            return self._fallback(e)

        logger.info(
            'extractor.analysis_complete',
            kind=analysis.kind,
            structured_actions=len(analysis.actions) if isinstance(analysis, StructuredAnalysis) else 0,
        )
        return ExtractionOutcome(analysis=analysis, raw=raw)

    def _fallback(
        self,
        error: InsightActionsError,
    ) -> ExtractionOutcome:
        logger.warning(
            'extractor.analysis_failed',
            error=str(error),
            error_type=type(error).__name__,
        )
        return ExtractionOutcome(analysis=empty_analysis(), raw=None, error=error)
