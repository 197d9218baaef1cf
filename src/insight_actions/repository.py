"""
CRM repository for Meetings, Deals and Actions.

Provides:
- Meeting reads, analysis write-back, and follow-up creation
- Deal reads and in-place stage overwrite
- Action CRUD scoped to the owning user
- Atomic status compare-and-set for the confirmation state machine
"""

import json
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError

from .clients.postgres_client import PostgresClient, _to_pg_ts, _to_pg_uuid
from .errors import RepositoryError
from .logging import get_logger
from .models.action import Action, ActionSource, ActionStatus, ActionType
from .models.entities import Deal, Meeting
from .scheduling import Clock, system_clock

logger = get_logger(__name__)


def _json_column(value: Any, default: Any) -> Any:
    """asyncpg hands JSONB back as text unless a codec is registered."""
    if value is None:
        return default
    if isinstance(value, (str, bytes)):
        return json.loads(value)
    return value


def _meeting_from_row(row: dict[str, Any]) -> Meeting:
    return Meeting(
        **{
            **row,
            'ai_insights': _json_column(row.get('ai_insights'), {}),
            'participants': _json_column(row.get('participants'), []),
        }
    )


def _action_from_row(row: dict[str, Any]) -> Action:
    return Action(
        **{**row, 'suggested_data': _json_column(row.get('suggested_data'), {})}
    )


class CrmRepository:
    """
    Persistence operations used by the analysis pipeline and the
    confirmation state machine.

    All reads of user-owned records take ``user_id`` so a foreign record is
    indistinguishable from a missing one.
    """

    def __init__(self, postgres_client: PostgresClient, clock: Clock = system_clock):
        """
        Initialize the repository.

        Args:
            postgres_client: Connected Postgres client
            clock: Time source for updated_at stamps
        """
        self.pg = postgres_client
        self.clock = clock

    async def _write(self, operation: str, sql: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        try:
            return await self.pg.execute_write(sql, params)
        except SQLAlchemyError as e:
            raise RepositoryError(
                f'{operation} failed: {e}', context={'operation': operation}
            ) from e

    async def _query(self, operation: str, sql: str, params: dict[str, Any]) -> list[dict[str, Any]]:
        try:
            return await self.pg.execute_query(sql, params)
        except SQLAlchemyError as e:
            raise RepositoryError(
                f'{operation} failed: {e}', context={'operation': operation}
            ) from e

    # =========================================================================
    # Meeting Operations
    # =========================================================================

    async def get_meeting(self, meeting_id: UUID, user_id: str | None = None) -> Meeting | None:
        """
        Load a meeting, optionally scoped to its owner.

        Args:
            meeting_id: Meeting UUID
            user_id: When given, meetings owned by other users are not returned

        Returns:
            Meeting or None
        """
        sql = 'SELECT * FROM meetings WHERE id = :id'
        params: dict[str, Any] = {'id': _to_pg_uuid(meeting_id)}
        if user_id is not None:
            sql += ' AND user_id = :user_id'
            params['user_id'] = user_id
        rows = await self._query('get_meeting', sql, params)
        return _meeting_from_row(rows[0]) if rows else None

    async def create_meeting(self, meeting: Meeting) -> Meeting:
        """Insert a new meeting record."""
        sql = """
            INSERT INTO meetings (
                id, title, client_id, deal_id, user_id, date_time,
                transcript, ai_summary, ai_insights, participants,
                created_at, updated_at
            ) VALUES (
                :id, :title, :client_id, :deal_id, :user_id, :date_time,
                :transcript, :ai_summary, CAST(:ai_insights AS jsonb),
                CAST(:participants AS jsonb), :created_at, :updated_at
            )
            RETURNING *
        """
        rows = await self._write(
            'create_meeting',
            sql,
            {
                'id': _to_pg_uuid(meeting.id),
                'title': meeting.title,
                'client_id': _to_pg_uuid(meeting.client_id),
                'deal_id': _to_pg_uuid(meeting.deal_id),
                'user_id': meeting.user_id,
                'date_time': _to_pg_ts(meeting.date_time),
                'transcript': meeting.transcript,
                'ai_summary': meeting.ai_summary,
                'ai_insights': json.dumps(meeting.ai_insights),
                'participants': json.dumps(meeting.participants),
                'created_at': _to_pg_ts(meeting.created_at),
                'updated_at': _to_pg_ts(meeting.updated_at),
            },
        )
        logger.info('repository.meeting_created', meeting_id=str(meeting.id))
        return _meeting_from_row(rows[0]) if rows else meeting

    async def save_analysis(
        self,
        meeting_id: UUID,
        transcript: str,
        ai_summary: str,
        ai_insights: dict[str, Any],
        participants: list[str] | None = None,
    ) -> Meeting | None:
        """
        Store the transcript and analysis output on a meeting.

        Participants are only overwritten when a non-empty list is given.

        Returns:
            Updated Meeting, or None if it no longer exists
        """
        sql = """
            UPDATE meetings SET
                transcript = :transcript,
                ai_summary = :ai_summary,
                ai_insights = CAST(:ai_insights AS jsonb),
                participants = COALESCE(CAST(:participants AS jsonb), participants),
                updated_at = :updated_at
            WHERE id = :id
            RETURNING *
        """
        rows = await self._write(
            'save_analysis',
            sql,
            {
                'id': _to_pg_uuid(meeting_id),
                'transcript': transcript,
                'ai_summary': ai_summary,
                'ai_insights': json.dumps(ai_insights),
                'participants': json.dumps(participants) if participants else None,
                'updated_at': self.clock(),
            },
        )
        return _meeting_from_row(rows[0]) if rows else None

    # =========================================================================
    # Deal Operations
    # =========================================================================

    async def get_deal(self, deal_id: UUID) -> Deal | None:
        rows = await self._query(
            'get_deal', 'SELECT * FROM deals WHERE id = :id', {'id': _to_pg_uuid(deal_id)}
        )
        return Deal(**rows[0]) if rows else None

    async def update_deal_stage(self, deal_id: UUID, stage: str) -> bool:
        """
        Overwrite a deal's stage in place.

        The value is written as given; callers pass already-normalized stages.
        Returns False if the deal does not exist.
        """
        sql = """
            UPDATE deals SET stage = :stage, updated_at = :updated_at
            WHERE id = :id
            RETURNING id
        """
        rows = await self._write(
            'update_deal_stage',
            sql,
            {
                'id': _to_pg_uuid(deal_id),
                'stage': stage,
                'updated_at': self.clock(),
            },
        )
        return bool(rows)

    # =========================================================================
    # Action Operations
    # =========================================================================

    async def create_action(self, action: Action) -> Action:
        """Insert an action record."""
        sql = """
            INSERT INTO actions (
                id, meeting_id, client_id, deal_id, user_id, type,
                suggested_data, status, source, created_at, updated_at
            ) VALUES (
                :id, :meeting_id, :client_id, :deal_id, :user_id, :type,
                CAST(:suggested_data AS jsonb), :status, :source,
                :created_at, :updated_at
            )
            RETURNING *
        """
        rows = await self._write(
            'create_action',
            sql,
            {
                'id': _to_pg_uuid(action.id),
                'meeting_id': _to_pg_uuid(action.meeting_id),
                'client_id': _to_pg_uuid(action.client_id),
                'deal_id': _to_pg_uuid(action.deal_id),
                'user_id': action.user_id,
                'type': ActionType(action.type).value,
                'suggested_data': json.dumps(action.suggested_data),
                'status': ActionStatus(action.status).value,
                'source': ActionSource(action.source).value,
                'created_at': _to_pg_ts(action.created_at),
                'updated_at': _to_pg_ts(action.updated_at),
            },
        )
        return _action_from_row(rows[0]) if rows else action

    async def get_action(self, action_id: UUID, user_id: str) -> Action | None:
        rows = await self._query(
            'get_action',
            'SELECT * FROM actions WHERE id = :id AND user_id = :user_id',
            {'id': _to_pg_uuid(action_id), 'user_id': user_id},
        )
        return _action_from_row(rows[0]) if rows else None

    async def transition_action_status(
        self,
        action_id: UUID,
        user_id: str,
        from_status: ActionStatus,
        to_status: ActionStatus,
    ) -> Action | None:
        """
        Compare-and-set an action's status.

        The update only applies while the stored status equals
        ``from_status``; concurrent callers race on a single statement and
        exactly one of them gets the row back.

        Returns:
            The updated Action, or None if the status had already moved
        """
        sql = """
            UPDATE actions SET status = :to_status, updated_at = :updated_at
            WHERE id = :id AND user_id = :user_id AND status = :from_status
            RETURNING *
        """
        rows = await self._write(
            'transition_action_status',
            sql,
            {
                'id': _to_pg_uuid(action_id),
                'user_id': user_id,
                'from_status': ActionStatus(from_status).value,
                'to_status': ActionStatus(to_status).value,
                'updated_at': self.clock(),
            },
        )
        return _action_from_row(rows[0]) if rows else None

    async def list_actions(
        self,
        user_id: str,
        client_id: UUID | None = None,
        deal_id: UUID | None = None,
    ) -> list[Action]:
        """
        List a user's actions for a deal or a client, newest first.

        ``deal_id`` takes precedence when both filters are given.
        """
        if deal_id is not None:
            column, value = 'deal_id', deal_id
        elif client_id is not None:
            column, value = 'client_id', client_id
        else:
            raise ValueError('client_id or deal_id is required')

        rows = await self._query(
            'list_actions',
            f'SELECT * FROM actions WHERE user_id = :user_id AND {column} = :value '
            'ORDER BY created_at DESC',
            {'user_id': user_id, 'value': _to_pg_uuid(value)},
        )
        return [_action_from_row(row) for row in rows]

    async def delete_action(self, action_id: UUID, user_id: str) -> bool:
        """Delete an action. Returns False if it did not exist for this user."""
        rows = await self._write(
            'delete_action',
            'DELETE FROM actions WHERE id = :id AND user_id = :user_id RETURNING id',
            {'id': _to_pg_uuid(action_id), 'user_id': user_id},
        )
        return bool(rows)
