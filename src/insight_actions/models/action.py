"""
ProposedAction and Action models.

ProposedAction is the in-memory candidate emitted by the deriver. Once it is
written to storage it becomes an Action with a persisted ``pending`` status.

Status lifecycle is monotonic: pending -> approved, never back.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from .entities import Meeting


class ActionType(str, Enum):
    SCHEDULE = 'schedule'
    EMAIL = 'email'
    FOLLOWUP = 'followup'
    STAGE_UPDATE = 'stage_update'


class ActionStatus(str, Enum):
    PENDING = 'pending'
    APPROVED = 'approved'


class ActionSource(str, Enum):
    AI = 'ai'
    MANUAL = 'manual'


class ProposedAction(BaseModel):
    """Candidate action produced by a single analysis pass."""

    type: ActionType = Field(..., description='Action type')
    suggested_data: dict[str, Any] = Field(
        default_factory=dict, description='Type-specific payload (camelCase keys)'
    )
    status: Literal['pending'] = 'pending'

    model_config = {'use_enum_values': True, 'frozen': True}


class Action(BaseModel):
    """
    Persisted action awaiting (or past) user confirmation.

    ``suggested_data`` is stored as JSON. For stage_update actions its
    ``proposedStage`` is always a DealStage value, guaranteed by the deriver.
    """

    id: UUID = Field(default_factory=uuid4, description='Action identifier')
    meeting_id: UUID | None = Field(default=None, description='Meeting the action originated from')
    client_id: UUID = Field(..., description='Contact inherited from the origin meeting')
    deal_id: UUID | None = Field(default=None, description='Deal inherited from the origin meeting')
    user_id: str = Field(..., description='Owning salesperson')

    type: ActionType = Field(..., description='Action type')
    suggested_data: dict[str, Any] = Field(default_factory=dict)
    status: ActionStatus = Field(default=ActionStatus.PENDING)
    source: ActionSource = Field(default=ActionSource.AI)

    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))

    @classmethod
    def from_proposal(
        cls,
        proposal: ProposedAction,
        meeting: Meeting,
        user_id: str,
        source: ActionSource = ActionSource.AI,
    ) -> 'Action':
        """Materialize a proposal against the meeting it was derived from."""
        return cls(
            meeting_id=meeting.id,
            client_id=meeting.client_id,
            deal_id=meeting.deal_id,
            user_id=user_id,
            type=proposal.type,
            suggested_data=dict(proposal.suggested_data),
            status=ActionStatus.PENDING,
            source=source,
        )

    @property
    def is_approved(self) -> bool:
        return self.status == ActionStatus.APPROVED

    model_config = {'use_enum_values': True}
