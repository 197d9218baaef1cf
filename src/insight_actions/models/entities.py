"""
Meeting and Deal records touched by the analysis and confirmation flows.

Both are plain persisted records owned by a user. The engine reads them to
seed actions and writes to them only as confirmation side effects:
- Meeting: receives transcript + AI insights; new follow-ups are created
- Deal: stage is overwritten in place, never versioned
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class DealStage(str, Enum):
    """Closed pipeline stage enum, declared in progression order."""

    LEAD = 'Lead'
    DISCOVERY = 'Discovery'
    QUALIFIED = 'Qualified'
    PROPOSAL_SENT = 'Proposal Sent'
    NEGOTIATION = 'Negotiation'
    CLOSED_WON = 'Closed Won'
    CLOSED_LOST = 'Closed Lost'


class DealStatus(str, Enum):
    ACTIVE = 'active'
    INACTIVE = 'inactive'
    CLOSED = 'closed'


class Meeting(BaseModel):
    """A sales meeting with a client, optionally linked to a deal."""

    id: UUID = Field(default_factory=uuid4, description='Meeting identifier')
    title: str = Field(..., description='Meeting title')
    client_id: UUID = Field(..., description='Contact this meeting is with')
    deal_id: UUID | None = Field(default=None, description='Linked deal, if any')
    user_id: str = Field(..., description='Owning salesperson')
    date_time: datetime = Field(..., description='When the meeting takes place')

    transcript: str = Field(default='', description='Raw transcript text')
    ai_summary: str = Field(default='', description='Executive summary from the analysis pass')
    ai_insights: dict[str, Any] = Field(
        default_factory=dict, description='Opaque analysis payload as returned by the extractor'
    )
    participants: list[str] = Field(default_factory=list, description='Names mentioned in the call')

    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))

    model_config = {'use_enum_values': True}


class Deal(BaseModel):
    """A sales opportunity. ``stage`` is the only field the engine mutates."""

    id: UUID = Field(default_factory=uuid4, description='Deal identifier')
    client_id: UUID = Field(..., description='Contact the deal is with')
    user_id: str = Field(..., description='Owning salesperson')
    title: str = Field(..., description='Deal title')
    stage: DealStage = Field(default=DealStage.LEAD, description='Current pipeline stage')
    value: float = Field(default=0.0, description='Deal value')
    status: DealStatus = Field(default=DealStatus.ACTIVE)
    last_activity: datetime | None = Field(default=None)

    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(tz=timezone.utc))

    model_config = {'use_enum_values': True}
