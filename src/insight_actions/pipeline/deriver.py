"""
Action derivation.

Turns one AnalysisResult into an ordered list of ProposedActions. Pure: no
I/O, and the only time source is the injected clock (or an explicit ``now``).

Schema resolution is newest-wins: a structured result with a non-empty
``actions`` array is derived from that array alone and the legacy
single-field signals are ignored. Otherwise the legacy signals produce at
most one schedule, one email/followup and one stage_update, in that order.
"""

import json
from datetime import datetime, timedelta
from typing import Any

from ..config import config
from ..logging import get_logger
from ..models.action import ActionType, ProposedAction
from ..models.analysis import (
    LegacyAnalysis,
    SchedulingIntent,
    StructuredActionItem,
    StructuredAnalysis,
    parse_analysis,
)
from ..models.entities import DealStage
from ..scheduling import Clock, resolve_scheduling_intent, system_clock
from ..stages import next_stage, normalize_stage

logger = get_logger(__name__)

DEFAULT_MEETING_TITLE = 'Follow-up Meeting'
EMAIL_SUBJECT = 'Follow-up regarding our meeting'
STAGE_UPDATE_TITLE = 'Update Deal Stage'
STRUCTURED_STAGE_REASON = 'Positive signals detected.'
LEGACY_STAGE_REASON = 'AI suggested stage update.'
INFERRED_STAGE_REASON = 'Positive deal signals detected.'

# nextStep containing any of these becomes an email, otherwise a followup task
EMAIL_KEYWORDS = ('email', 'send', 'follow up', 'follow-up')


def _structured_email_body(title: str | None) -> str:
    return f'Hi [Name],\n\nGreat speaking with you today. Regarding: {title}.\n\nBest,\n[Your Name]'


def _legacy_email_body(next_step: str) -> str:
    return (
        'Hi [Name],\n\nGreat speaking with you today. As discussed, here are the next steps:\n\n'
        f'{next_step}\n\nBest,\n[Your Name]'
    )


def _known_stage(stage: DealStage | str | None) -> DealStage | None:
    if stage is None:
        return None
    try:
        return DealStage(stage)
    except ValueError:
        logger.warning('deriver.unknown_current_stage', stage=stage)
        return None


class ActionDeriver:
    """
    Derives proposed actions from an analysis pass.

    Usage:
        deriver = ActionDeriver(clock=system_clock)
        proposals = deriver.derive(analysis, current_stage='Discovery')
    """

    def __init__(
        self,
        clock: Clock = system_clock,
        default_delay_hours: int | None = None,
        infer_stage_from_signal: bool | None = None,
    ):
        """
        Args:
            clock: Time source used when ``derive`` gets no explicit ``now``
            default_delay_hours: Offset for schedule actions whose time cannot
                                 be resolved (defaults to DEFAULT_FOLLOWUP_DELAY_HOURS)
            infer_stage_from_signal: Propose the next stage on a positive
                                     signal when no stage was suggested
                                     (defaults to INFER_STAGE_FROM_SIGNAL)
        """
        self.clock = clock
        self.default_delay = timedelta(
            hours=default_delay_hours
            if default_delay_hours is not None
            else config.DEFAULT_FOLLOWUP_DELAY_HOURS
        )
        self.infer_stage_from_signal = (
            config.INFER_STAGE_FROM_SIGNAL
            if infer_stage_from_signal is None
            else infer_stage_from_signal
        )

    def derive(
        self,
        analysis: LegacyAnalysis | StructuredAnalysis | dict[str, Any],
        now: datetime | None = None,
        current_stage: DealStage | str | None = None,
    ) -> list[ProposedAction]:
        """
        Derive proposed actions.

        Args:
            analysis: Tagged analysis, or a raw payload to resolve first
            now: Reference time (defaults to the clock)
            current_stage: Stage of the linked deal, when known

        Returns:
            Proposed actions in emission order

        Raises:
            ExtractionError: If a raw payload cannot be resolved
        """
        analysis = parse_analysis(analysis)
        now = now if now is not None else self.clock()
        current = _known_stage(current_stage)

        if isinstance(analysis, StructuredAnalysis) and analysis.actions:
            proposals = self._from_structured(analysis.actions, now, current)
            path = 'structured'
        else:
            proposals = self._from_legacy(analysis, now, current)
            path = 'legacy'

        logger.debug(
            'deriver.actions_derived',
            path=path,
            count=len(proposals),
            types=[p.type for p in proposals],
        )
        return proposals

    # =========================================================================
    # Structured path
    # =========================================================================

    def _from_structured(
        self,
        items: list[StructuredActionItem],
        now: datetime,
        current: DealStage | None,
    ) -> list[ProposedAction]:
        proposals = []
        for item in items:
            if item.type == ActionType.SCHEDULE.value:
                proposals.append(
                    self._schedule(
                        title=item.title or DEFAULT_MEETING_TITLE,
                        when=self._resolve(item.date_time, now)
                        or self._resolve(item.title, now)
                        or now + self.default_delay,
                        notes=item.evidence or '',
                    )
                )
            elif item.type == ActionType.EMAIL.value:
                proposals.append(
                    ProposedAction(
                        type=ActionType.EMAIL,
                        suggested_data={
                            'title': item.title,
                            'task': item.title,
                            'subject': EMAIL_SUBJECT,
                            'body': _structured_email_body(item.title),
                        },
                    )
                )
            elif item.type == ActionType.FOLLOWUP.value:
                proposals.append(
                    ProposedAction(
                        type=ActionType.FOLLOWUP,
                        suggested_data={'title': item.title, 'task': item.title},
                    )
                )
            elif item.type == ActionType.STAGE_UPDATE.value:
                proposal = self._stage_update(
                    item.proposed_stage or item.title,
                    reason=item.evidence or STRUCTURED_STAGE_REASON,
                    current=current,
                )
                if proposal is not None:
                    proposals.append(proposal)
            else:
                logger.info('deriver.unknown_action_type', action_type=item.type)
        return proposals

    # =========================================================================
    # Legacy path
    # =========================================================================

    def _from_legacy(
        self,
        analysis: LegacyAnalysis | StructuredAnalysis,
        now: datetime,
        current: DealStage | None,
    ) -> list[ProposedAction]:
        proposals = []

        # Step 1: schedule
        intent = analysis.scheduling_intent
        if isinstance(intent, SchedulingIntent):
            proposals.append(
                self._schedule(
                    title=intent.title or DEFAULT_MEETING_TITLE,
                    when=self._resolve(intent.date_time, now) or now + self.default_delay,
                    notes=json.dumps(intent.model_dump(by_alias=True, exclude_none=True)),
                )
            )
        elif isinstance(intent, str) and intent.strip():
            proposals.append(
                self._schedule(
                    title=DEFAULT_MEETING_TITLE,
                    when=self._resolve(intent, now) or now + self.default_delay,
                    notes=intent,
                )
            )

        # Step 2: email or followup
        next_step = analysis.next_step
        if isinstance(next_step, str) and next_step.strip():
            lowered = next_step.lower()
            if any(keyword in lowered for keyword in EMAIL_KEYWORDS):
                proposals.append(
                    ProposedAction(
                        type=ActionType.EMAIL,
                        suggested_data={
                            'task': next_step,
                            'subject': EMAIL_SUBJECT,
                            'body': _legacy_email_body(next_step),
                        },
                    )
                )
            else:
                proposals.append(
                    ProposedAction(type=ActionType.FOLLOWUP, suggested_data={'task': next_step})
                )

        # Step 3: stage_update
        suggestion = analysis.stage_suggestion_text
        if isinstance(suggestion, str) and suggestion.strip() and suggestion.strip() != 'None':
            proposal = self._stage_update(
                suggestion,
                reason=analysis.summary_text or LEGACY_STAGE_REASON,
                current=current,
            )
            if proposal is not None:
                proposals.append(proposal)
        elif (
            self.infer_stage_from_signal
            and analysis.deal_signal == 'Positive'
            and current is not None
        ):
            inferred = next_stage(current)
            if inferred is not None:
                proposals.append(
                    self._stage_proposal(
                        inferred,
                        reason=analysis.summary_text or INFERRED_STAGE_REASON,
                        current=current,
                    )
                )

        return proposals

    # =========================================================================
    # Builders
    # =========================================================================

    @staticmethod
    def _resolve(text: str | None, now: datetime) -> datetime | None:
        return resolve_scheduling_intent(text, now) if text else None

    @staticmethod
    def _schedule(title: str, when: datetime, notes: str) -> ProposedAction:
        return ProposedAction(
            type=ActionType.SCHEDULE,
            suggested_data={'title': title, 'dateTime': when.isoformat(), 'notes': notes},
        )

    def _stage_update(
        self,
        suggestion: str | None,
        reason: str,
        current: DealStage | None,
    ) -> ProposedAction | None:
        stage = normalize_stage(suggestion)
        if stage is None:
            logger.info('deriver.stage_normalization_miss', suggestion=suggestion)
            return None
        if current is not None and stage == current:
            logger.debug('deriver.stage_update_noop', stage=stage.value)
            return None
        return self._stage_proposal(stage, reason, current)

    @staticmethod
    def _stage_proposal(
        stage: DealStage,
        reason: str,
        current: DealStage | None,
    ) -> ProposedAction:
        data: dict[str, Any] = {
            'title': STAGE_UPDATE_TITLE,
            'proposedStage': stage.value,
            'reason': reason,
        }
        if current is not None:
            data['currentStage'] = current.value
        return ProposedAction(type=ActionType.STAGE_UPDATE, suggested_data=data)


def derive_actions(
    analysis: LegacyAnalysis | StructuredAnalysis | dict[str, Any],
    now: datetime,
    current_stage: DealStage | str | None = None,
) -> list[ProposedAction]:
    """Derive proposed actions with default settings at an explicit ``now``."""
    return ActionDeriver().derive(analysis, now=now, current_stage=current_stage)
