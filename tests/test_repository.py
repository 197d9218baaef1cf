"""
Tests for the CRM repository SQL layer.

The PostgresClient is mocked; assertions cover the SQL shape, bind
parameters and row-to-model mapping.
"""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from sqlalchemy.exc import SQLAlchemyError

from insight_actions.clients.postgres_client import PostgresClient
from insight_actions.errors import RepositoryError
from insight_actions.models.action import Action, ActionStatus, ActionType
from insight_actions.models.entities import Deal, DealStage, Meeting
from insight_actions.repository import CrmRepository

USER_ID = 'auth0|user123'
CREATED = datetime(2026, 3, 4, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def pg() -> AsyncMock:
    client = AsyncMock(spec=PostgresClient)
    client.execute_query.return_value = []
    client.execute_write.return_value = []
    return client


@pytest.fixture
def repository(pg) -> CrmRepository:
    return CrmRepository(pg)


def _action_row(**overrides) -> dict:
    row = {
        'id': uuid4(),
        'meeting_id': uuid4(),
        'client_id': uuid4(),
        'deal_id': None,
        'user_id': USER_ID,
        'type': 'schedule',
        'suggested_data': '{"title": "Demo", "dateTime": "2026-03-05T16:00:00+00:00"}',
        'status': 'pending',
        'source': 'ai',
        'created_at': CREATED,
        'updated_at': CREATED,
    }
    row.update(overrides)
    return row


def _meeting_row(**overrides) -> dict:
    row = {
        'id': uuid4(),
        'title': 'Acme call',
        'client_id': uuid4(),
        'deal_id': None,
        'user_id': USER_ID,
        'date_time': CREATED,
        'transcript': '',
        'ai_summary': '',
        'ai_insights': '{"summary": "ok"}',
        'participants': '["Dana"]',
        'created_at': CREATED,
        'updated_at': CREATED,
    }
    row.update(overrides)
    return row


class TestActionStatusTransition:
    """Compare-and-set on actions.status."""

    @pytest.mark.asyncio
    async def test_update_is_conditional_on_current_status(self, repository, pg):
        row = _action_row(status='approved')
        pg.execute_write.return_value = [row]

        action = await repository.transition_action_status(
            row['id'], USER_ID, ActionStatus.PENDING, ActionStatus.APPROVED
        )

        sql, params = pg.execute_write.await_args.args
        assert 'status = :from_status' in sql
        assert 'user_id = :user_id' in sql
        assert 'RETURNING' in sql
        assert params['from_status'] == 'pending'
        assert params['to_status'] == 'approved'
        assert params['id'] == str(row['id'])
        assert action.status == 'approved'
        assert action.suggested_data['title'] == 'Demo'

    @pytest.mark.asyncio
    async def test_lost_race_returns_none(self, repository, pg):
        pg.execute_write.return_value = []

        result = await repository.transition_action_status(
            uuid4(), USER_ID, ActionStatus.PENDING, ActionStatus.APPROVED
        )

        assert result is None


class TestActionCrud:
    @pytest.mark.asyncio
    async def test_create_action_serializes_json(self, repository, pg):
        action = Action(
            client_id=uuid4(),
            user_id=USER_ID,
            type=ActionType.EMAIL,
            suggested_data={'task': 'Send deck'},
        )
        pg.execute_write.return_value = [_action_row(id=action.id, type='email', suggested_data={'task': 'Send deck'})]

        created = await repository.create_action(action)

        sql, params = pg.execute_write.await_args.args
        assert 'INSERT INTO actions' in sql
        assert json.loads(params['suggested_data']) == {'task': 'Send deck'}
        assert params['status'] == 'pending'
        assert params['source'] == 'ai'
        assert params['deal_id'] is None
        assert created.id == action.id

    @pytest.mark.asyncio
    async def test_get_action_scoped_to_user(self, repository, pg):
        row = _action_row()
        pg.execute_query.return_value = [row]

        action = await repository.get_action(row['id'], USER_ID)

        sql, params = pg.execute_query.await_args.args
        assert 'user_id = :user_id' in sql
        assert params['user_id'] == USER_ID
        assert action.type == 'schedule'

    @pytest.mark.asyncio
    async def test_get_action_missing(self, repository):
        assert await repository.get_action(uuid4(), USER_ID) is None

    @pytest.mark.asyncio
    async def test_list_actions_prefers_deal(self, repository, pg):
        deal_id, client_id = uuid4(), uuid4()

        await repository.list_actions(USER_ID, client_id=client_id, deal_id=deal_id)

        sql, params = pg.execute_query.await_args.args
        assert 'deal_id = :value' in sql
        assert 'ORDER BY created_at DESC' in sql
        assert params['value'] == str(deal_id)

    @pytest.mark.asyncio
    async def test_list_actions_requires_filter(self, repository):
        with pytest.raises(ValueError):
            await repository.list_actions(USER_ID)

    @pytest.mark.asyncio
    async def test_delete_action(self, repository, pg):
        pg.execute_write.return_value = [{'id': uuid4()}]
        assert await repository.delete_action(uuid4(), USER_ID) is True

        pg.execute_write.return_value = []
        assert await repository.delete_action(uuid4(), USER_ID) is False


class TestMeetings:
    @pytest.mark.asyncio
    async def test_get_meeting_decodes_json_columns(self, repository, pg):
        row = _meeting_row()
        pg.execute_query.return_value = [row]

        meeting = await repository.get_meeting(row['id'], USER_ID)

        assert isinstance(meeting, Meeting)
        assert meeting.ai_insights == {'summary': 'ok'}
        assert meeting.participants == ['Dana']

    @pytest.mark.asyncio
    async def test_get_meeting_without_owner_filter(self, repository, pg):
        await repository.get_meeting(uuid4())

        sql, params = pg.execute_query.await_args.args
        assert 'user_id' not in sql
        assert 'user_id' not in params

    @pytest.mark.asyncio
    async def test_save_analysis_keeps_participants_when_empty(self, repository, pg):
        await repository.save_analysis(uuid4(), 'transcript', 'summary', {'a': 1}, participants=[])

        sql, params = pg.execute_write.await_args.args
        assert 'COALESCE' in sql
        assert params['participants'] is None
        assert json.loads(params['ai_insights']) == {'a': 1}

    @pytest.mark.asyncio
    async def test_create_meeting(self, repository, pg):
        meeting = Meeting(title='Follow-up Meeting', client_id=uuid4(), user_id=USER_ID, date_time=CREATED)

        await repository.create_meeting(meeting)

        sql, params = pg.execute_write.await_args.args
        assert 'INSERT INTO meetings' in sql
        assert params['date_time'] == CREATED
        assert json.loads(params['participants']) == []


class TestDeals:
    @pytest.mark.asyncio
    async def test_update_deal_stage_writes_value_as_given(self, repository, pg):
        deal_id = uuid4()
        pg.execute_write.return_value = [{'id': deal_id}]

        updated = await repository.update_deal_stage(deal_id, DealStage.NEGOTIATION.value)

        sql, params = pg.execute_write.await_args.args
        assert 'UPDATE deals SET stage = :stage' in sql
        assert params['stage'] == 'Negotiation'
        assert params['id'] == str(deal_id)
        assert updated is True

    @pytest.mark.asyncio
    async def test_update_missing_deal(self, repository, pg):
        pg.execute_write.return_value = []

        assert await repository.update_deal_stage(uuid4(), 'Lead') is False

    @pytest.mark.asyncio
    async def test_get_deal(self, repository, pg):
        deal_id = uuid4()
        pg.execute_query.return_value = [
            {
                'id': deal_id,
                'client_id': uuid4(),
                'user_id': USER_ID,
                'title': 'Acme',
                'stage': 'Discovery',
                'value': 1000.0,
                'status': 'active',
                'last_activity': None,
                'created_at': CREATED,
                'updated_at': CREATED,
            }
        ]

        deal = await repository.get_deal(deal_id)

        assert isinstance(deal, Deal)
        assert deal.stage == DealStage.DISCOVERY.value


class TestClock:
    @pytest.mark.asyncio
    async def test_updated_at_comes_from_clock(self, pg):
        repository = CrmRepository(pg, clock=lambda: CREATED)

        await repository.transition_action_status(
            uuid4(), USER_ID, ActionStatus.PENDING, ActionStatus.APPROVED
        )
        _, params = pg.execute_write.await_args.args
        assert params['updated_at'] == CREATED

        await repository.update_deal_stage(uuid4(), 'Lead')
        _, params = pg.execute_write.await_args.args
        assert params['updated_at'] == CREATED


class TestErrorWrapping:
    @pytest.mark.asyncio
    async def test_database_errors_become_repository_errors(self, repository, pg):
        pg.execute_query.side_effect = SQLAlchemyError('connection lost')

        with pytest.raises(RepositoryError) as exc_info:
            await repository.get_deal(uuid4())

        assert exc_info.value.context['operation'] == 'get_deal'
