"""
Action confirmation state machine.

States: pending -> approved. Approval is a single compare-and-set in the
repository, so of several concurrent confirmations of one action exactly
one wins and only the winner applies side effects:

- schedule: create a follow-up Meeting for the origin meeting's client
- stage_update: overwrite the linked Deal's stage (missing deal is skipped)
- email / followup: none

The origin meeting of a schedule action is checked before the transition;
if it is gone the action stays pending and nothing is created.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from ..config import config
from ..errors import (
    ActionAlreadyApprovedError,
    ActionNotFoundError,
    ReferentialIntegrityError,
    ValidationError,
)
from ..logging import PipelineTimer, get_logger, logging_context
from ..models.action import Action, ActionStatus, ActionType
from ..models.entities import Meeting
from ..repository import CrmRepository
from ..scheduling import Clock, resolve_scheduling_intent, system_clock
from .deriver import DEFAULT_MEETING_TITLE

logger = get_logger(__name__)


@dataclass
class ConfirmationResult:
    """Outcome of confirming one action."""

    action: Action
    new_meeting: Meeting | None = None
    stage_timings: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            'action': self.action.model_dump(mode='json'),
            'new_meeting': self.new_meeting.model_dump(mode='json') if self.new_meeting else None,
            'stage_timings': self.stage_timings,
        }


class ActionConfirmationService:
    """
    Confirms pending actions and applies their side effects.

    Usage:
        service = ActionConfirmationService(repository)
        result = await service.confirm(action_id, user_id)
    """

    def __init__(
        self,
        repository: CrmRepository,
        clock: Clock = system_clock,
        default_delay_hours: int | None = None,
    ):
        """
        Args:
            repository: Persistence for actions, meetings and deals
            clock: Time source for follow-ups without a stored time
            default_delay_hours: Offset for such follow-ups
                                 (defaults to DEFAULT_FOLLOWUP_DELAY_HOURS)
        """
        self.repository = repository
        self.clock = clock
        self.default_delay = timedelta(
            hours=default_delay_hours
            if default_delay_hours is not None
            else config.DEFAULT_FOLLOWUP_DELAY_HOURS
        )

    async def confirm(self, action_id: UUID, user_id: str) -> ConfirmationResult:
        """
        Approve one pending action and apply its side effect.

        Args:
            action_id: Action to confirm
            user_id: Acting user; must own the action

        Returns:
            ConfirmationResult with the approved action and, for schedule
            actions, the created meeting

        Raises:
            ActionNotFoundError: Unknown action or owned by another user
            ActionAlreadyApprovedError: Already approved, or lost a concurrent race
            ReferentialIntegrityError: Schedule action whose origin meeting is gone
        """
        timer = PipelineTimer()

        with logging_context(user_id=user_id):
            # Step 1: Load the action and, for schedules, its origin meeting
            with timer.stage('load_action'):
                action = await self.repository.get_action(action_id, user_id)
                if action is None:
                    raise ActionNotFoundError(
                        'Action not found', context={'action_id': str(action_id)}
                    )
                if action.is_approved:
                    raise ActionAlreadyApprovedError(
                        'Action already approved', context={'action_id': str(action_id)}
                    )

                origin: Meeting | None = None
                if action.type == ActionType.SCHEDULE.value:
                    origin = await self._origin_meeting(action)

            # Step 2: pending -> approved
            with timer.stage('transition'):
                approved = await self.repository.transition_action_status(
                    action_id, user_id, ActionStatus.PENDING, ActionStatus.APPROVED
                )
            if approved is None:
                logger.info('confirmation.race_lost', action_id=str(action_id))
                raise ActionAlreadyApprovedError(
                    'Action already approved', context={'action_id': str(action_id)}
                )

            logger.info(
                'confirmation.approved',
                action_id=str(action_id),
                action_type=approved.type,
            )

            # Step 3: Side effect (winner only)
            try:
                with timer.stage('side_effect'):
                    new_meeting = await self._apply_side_effect(approved, origin)
            except Exception:
                logger.exception(
                    'confirmation.side_effect_failed',
                    action_id=str(action_id),
                    action_type=approved.type,
                )
                raise

            logger.info(
                'confirmation.complete',
                action_id=str(action_id),
                new_meeting_id=str(new_meeting.id) if new_meeting else None,
                **timer.summary(),
            )
            return ConfirmationResult(
                action=approved,
                new_meeting=new_meeting,
                stage_timings=timer.stages.copy(),
            )

    async def list_actions(
        self,
        user_id: str,
        client_id: UUID | None = None,
        deal_id: UUID | None = None,
    ) -> list[Action]:
        """
        List a user's actions, newest first.

        Raises:
            ValidationError: If neither client_id nor deal_id is given
        """
        if client_id is None and deal_id is None:
            raise ValidationError('Please provide client_id or deal_id')
        return await self.repository.list_actions(user_id, client_id=client_id, deal_id=deal_id)

    async def delete_action(self, action_id: UUID, user_id: str) -> None:
        """
        Delete an action regardless of status.

        Raises:
            ActionNotFoundError: Unknown action or owned by another user
        """
        deleted = await self.repository.delete_action(action_id, user_id)
        if not deleted:
            raise ActionNotFoundError('Action not found', context={'action_id': str(action_id)})
        logger.info('confirmation.action_deleted', action_id=str(action_id), user_id=user_id)

    # =========================================================================
    # Side effects
    # =========================================================================

    async def _origin_meeting(self, action: Action) -> Meeting:
        origin = (
            await self.repository.get_meeting(action.meeting_id)
            if action.meeting_id is not None
            else None
        )
        if origin is None:
            raise ReferentialIntegrityError(
                'Original meeting not found, cannot schedule follow-up',
                context={
                    'action_id': str(action.id),
                    'meeting_id': str(action.meeting_id) if action.meeting_id else None,
                },
            )
        return origin

    async def _apply_side_effect(self, action: Action, origin: Meeting | None) -> Meeting | None:
        if action.type == ActionType.SCHEDULE.value and origin is not None:
            return await self._schedule_followup(action, origin)
        if action.type == ActionType.STAGE_UPDATE.value:
            await self._update_deal_stage(action)
        return None

    async def _schedule_followup(self, action: Action, origin: Meeting) -> Meeting:
        data = action.suggested_data
        now = self.clock()
        when: datetime = resolve_scheduling_intent(data.get('dateTime'), now) or (
            now + self.default_delay
        )

        meeting = Meeting(
            title=data.get('title') or DEFAULT_MEETING_TITLE,
            client_id=origin.client_id,
            user_id=action.user_id,
            date_time=when,
            transcript='',
            ai_summary='',
        )
        created = await self.repository.create_meeting(meeting)
        logger.info(
            'confirmation.followup_scheduled',
            action_id=str(action.id),
            new_meeting_id=str(created.id),
            date_time=when.isoformat(),
        )
        return created

    async def _update_deal_stage(self, action: Action) -> None:
        proposed = action.suggested_data.get('proposedStage')
        deal = await self.repository.get_deal(action.deal_id) if action.deal_id else None
        if deal is None:
            logger.info(
                'confirmation.deal_missing',
                action_id=str(action.id),
                deal_id=str(action.deal_id) if action.deal_id else None,
            )
            return

        updated = await self.repository.update_deal_stage(deal.id, proposed)
        if not updated:
            logger.info(
                'confirmation.deal_missing',
                action_id=str(action.id),
                deal_id=str(deal.id),
            )
            return

        logger.info(
            'confirmation.deal_stage_updated',
            deal_id=str(deal.id),
            previous_stage=deal.stage,
            stage=proposed,
        )
