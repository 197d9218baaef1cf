"""
Pytest configuration and shared fixtures.

Key fixtures:
- fixed_now / fixed_clock: Wednesday 2026-03-04 10:00 UTC
- repository: in-memory CrmRepository stand-in with an atomic status CAS
- origin_meeting / deal: seeded records owned by USER_ID
- llm_api_key: skips live tests when no key is configured
"""

import asyncio
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from uuid import UUID, uuid4

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

# Load environment variables
from dotenv import load_dotenv

env_file = Path(__file__).parent.parent / '.env'
if env_file.exists():
    load_dotenv(env_file)

from insight_actions.models.action import Action, ActionStatus
from insight_actions.models.entities import Deal, DealStage, Meeting

USER_ID = 'auth0|user123'
OTHER_USER_ID = 'auth0|intruder'
CLIENT_ID = UUID('550e8400-e29b-41d4-a716-446655440000')

# Wednesday
FIXED_NOW = datetime(2026, 3, 4, 10, 0, tzinfo=timezone.utc)


class InMemoryCrmRepository:
    """
    Dict-backed repository with the same surface as CrmRepository.

    ``get_action`` snapshots the row and then yields to the event loop so
    concurrent confirmations both observe ``pending``; the status
    compare-and-set has no await inside and is therefore atomic.
    """

    def __init__(self):
        self.meetings: dict[UUID, Meeting] = {}
        self.deals: dict[UUID, Deal] = {}
        self.actions: dict[UUID, Action] = {}

    async def get_meeting(self, meeting_id, user_id=None):
        meeting = self.meetings.get(meeting_id)
        if meeting is None or (user_id is not None and meeting.user_id != user_id):
            return None
        return meeting.model_copy(deep=True)

    async def create_meeting(self, meeting):
        self.meetings[meeting.id] = meeting.model_copy(deep=True)
        return meeting

    async def save_analysis(self, meeting_id, transcript, ai_summary, ai_insights, participants=None):
        meeting = self.meetings.get(meeting_id)
        if meeting is None:
            return None
        update = {'transcript': transcript, 'ai_summary': ai_summary, 'ai_insights': ai_insights}
        if participants:
            update['participants'] = participants
        self.meetings[meeting_id] = meeting.model_copy(update=update)
        return self.meetings[meeting_id].model_copy(deep=True)

    async def get_deal(self, deal_id):
        deal = self.deals.get(deal_id)
        return deal.model_copy(deep=True) if deal else None

    async def update_deal_stage(self, deal_id, stage):
        deal = self.deals.get(deal_id)
        if deal is None:
            return False
        self.deals[deal_id] = deal.model_copy(update={'stage': stage})
        return True

    async def create_action(self, action):
        self.actions[action.id] = action.model_copy(deep=True)
        return action

    async def get_action(self, action_id, user_id):
        action = self.actions.get(action_id)
        snapshot = action.model_copy(deep=True) if action and action.user_id == user_id else None
        await asyncio.sleep(0)
        return snapshot

    async def transition_action_status(self, action_id, user_id, from_status, to_status):
        action = self.actions.get(action_id)
        if action is None or action.user_id != user_id:
            return None
        if action.status != ActionStatus(from_status).value:
            return None
        self.actions[action_id] = action.model_copy(
            update={'status': ActionStatus(to_status).value}
        )
        return self.actions[action_id].model_copy(deep=True)

    async def list_actions(self, user_id, client_id=None, deal_id=None):
        if deal_id is not None:
            rows = [a for a in self.actions.values() if a.deal_id == deal_id]
        elif client_id is not None:
            rows = [a for a in self.actions.values() if a.client_id == client_id]
        else:
            raise ValueError('client_id or deal_id is required')
        rows = [a for a in rows if a.user_id == user_id]
        return sorted(rows, key=lambda a: a.created_at, reverse=True)

    async def delete_action(self, action_id, user_id):
        action = self.actions.get(action_id)
        if action is None or action.user_id != user_id:
            return False
        del self.actions[action_id]
        return True


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
def repository() -> InMemoryCrmRepository:
    return InMemoryCrmRepository()


@pytest.fixture
def deal(repository) -> Deal:
    """Deal in Discovery, stored in the repository."""
    record = Deal(
        id=uuid4(),
        client_id=CLIENT_ID,
        user_id=USER_ID,
        title='Acme platform rollout',
        stage=DealStage.DISCOVERY,
        value=48000.0,
    )
    repository.deals[record.id] = record
    return record


@pytest.fixture
def origin_meeting(repository, deal) -> Meeting:
    """Meeting linked to ``deal``, stored in the repository."""
    record = Meeting(
        id=uuid4(),
        title='Acme discovery call',
        client_id=CLIENT_ID,
        deal_id=deal.id,
        user_id=USER_ID,
        date_time=datetime(2026, 3, 3, 15, 0, tzinfo=timezone.utc),
        participants=['Dana (existing)'],
    )
    repository.meetings[record.id] = record
    return record


@pytest.fixture
def llm_api_key() -> str:
    """Get the chat endpoint API key from environment."""
    key = os.getenv('LLM_API_KEY') or os.getenv('OPENAI_API_KEY')
    if not key:
        pytest.skip('LLM_API_KEY not set')
    return key


@pytest.fixture
def sample_transcript() -> str:
    """Sample sales-call transcript."""
    return """
Dana: Thanks for making time today. The team loved the pilot results.
Sam: Great to hear. What would you need to move forward?
Dana: Send over a quote for the 200-seat tier and we'll review it internally.
Sam: Will do. Shall we walk your IT lead through the security setup?
Dana: Yes, let's do Thursday at 4pm.
""".strip()
