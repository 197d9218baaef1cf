"""
Postgres client for the Insight Action engine.

SQLAlchemy 2.0 async engine + asyncpg, executing raw SQL. Every call runs in
its own transaction (``engine.begin()``), so a single statement such as the
approval compare-and-set is atomic on its own.

Tables:
- meetings (transcript, AI summary/insights, participants)
- deals (stage overwritten in place)
- actions (pending/approved lifecycle)
"""

from __future__ import annotations

from datetime import datetime
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse
from uuid import UUID

import structlog
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from ..config import config

logger = structlog.get_logger(__name__)

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS deals (
        id UUID PRIMARY KEY,
        client_id UUID NOT NULL,
        user_id TEXT NOT NULL,
        title TEXT NOT NULL,
        stage TEXT NOT NULL DEFAULT 'Lead',
        value DOUBLE PRECISION NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT 'active',
        last_activity TIMESTAMPTZ,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS meetings (
        id UUID PRIMARY KEY,
        title TEXT NOT NULL,
        client_id UUID NOT NULL,
        deal_id UUID REFERENCES deals(id) ON DELETE SET NULL,
        user_id TEXT NOT NULL,
        date_time TIMESTAMPTZ NOT NULL,
        transcript TEXT NOT NULL DEFAULT '',
        ai_summary TEXT NOT NULL DEFAULT '',
        ai_insights JSONB NOT NULL DEFAULT '{}'::jsonb,
        participants JSONB NOT NULL DEFAULT '[]'::jsonb,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS actions (
        id UUID PRIMARY KEY,
        meeting_id UUID REFERENCES meetings(id) ON DELETE SET NULL,
        client_id UUID NOT NULL,
        deal_id UUID REFERENCES deals(id) ON DELETE SET NULL,
        user_id TEXT NOT NULL,
        type TEXT NOT NULL,
        suggested_data JSONB NOT NULL DEFAULT '{}'::jsonb,
        status TEXT NOT NULL DEFAULT 'pending',
        source TEXT NOT NULL DEFAULT 'ai',
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    """,
    'CREATE INDEX IF NOT EXISTS actions_user_client_idx ON actions (user_id, client_id)',
    'CREATE INDEX IF NOT EXISTS actions_user_deal_idx ON actions (user_id, deal_id)',
    'CREATE INDEX IF NOT EXISTS meetings_user_idx ON meetings (user_id)',
)


def _to_pg_uuid(val: UUID | str | None) -> str | None:
    """Convert UUID or string to plain string for Postgres, or None."""
    if val is None:
        return None
    return str(val)


def _to_pg_ts(val: datetime | str | None) -> datetime | None:
    """Ensure value is a datetime for asyncpg (which needs native types, not strings)."""
    if val is None:
        return None
    if isinstance(val, datetime):
        return val
    return datetime.fromisoformat(val)


def _sanitize_url(url: str) -> str:
    """Remove libpq-only query params (``sslmode``, ``channel_binding``) asyncpg rejects."""
    strip_params = {'channel_binding', 'sslmode'}
    parsed = urlparse(url)
    if not parsed.query:
        return url
    params = parse_qs(parsed.query)
    filtered = {k: v for k, v in params.items() if k not in strip_params}
    new_query = urlencode(filtered, doseq=True)
    return urlunparse(parsed._replace(query=new_query))


def _normalize_driver(url: str) -> str:
    if url.startswith('postgres://'):
        return url.replace('postgres://', 'postgresql+asyncpg://', 1)
    if url.startswith('postgresql://') and '+asyncpg' not in url:
        return url.replace('postgresql://', 'postgresql+asyncpg://', 1)
    return url


class PostgresClient:
    """
    Async Postgres client.

    Uses SQLAlchemy 2.0 async engine with asyncpg for raw SQL execution.
    Rows come back as plain dicts keyed by column name.
    """

    def __init__(self, database_url: str | None = None, require_ssl: bool | None = None):
        """
        Initialize with a Postgres connection URL.

        Args:
            database_url: Postgres URL. ``postgres://`` and ``postgresql://``
                          prefixes are rewritten to use asyncpg.
            require_ssl: Force SSL on connect (defaults to DATABASE_REQUIRE_SSL)
        """
        self._engine: AsyncEngine | None = None
        self._database_url = database_url
        self._require_ssl = config.DATABASE_REQUIRE_SSL if require_ssl is None else require_ssl

    async def connect(self, database_url: str | None = None) -> None:
        """
        Create the async engine. Idempotent: no-op if already connected.

        Args:
            database_url: Override the URL from __init__ (falls back to DATABASE_URL)
        """
        if self._engine is not None:
            return

        url = database_url or self._database_url or config.DATABASE_URL
        if not url:
            raise ValueError('database_url is required')

        url = _normalize_driver(_sanitize_url(url))

        connect_args: dict[str, Any] = {'prepared_statement_cache_size': 0}
        if self._require_ssl:
            connect_args['ssl'] = 'require'

        self._engine = create_async_engine(
            url,
            pool_size=5,
            max_overflow=5,
            pool_pre_ping=True,
            pool_timeout=30,
            connect_args=connect_args,
        )
        logger.info('postgres_client.connected', ssl=self._require_ssl)

    async def close(self) -> None:
        """Dispose of the engine and connection pool."""
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            logger.info('postgres_client.closed')

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError('PostgresClient not connected, call connect() first')
        return self._engine

    async def verify_connectivity(self) -> bool:
        """Return True if we can execute a simple query."""
        try:
            async with self.engine.begin() as conn:
                await conn.execute(text('SELECT 1'))
            return True
        except Exception:
            logger.exception('postgres_client.connectivity_check_failed')
            return False

    async def setup_schema(self) -> list[str]:
        """
        Create tables and indexes if they do not exist.

        Returns:
            The statements executed
        """
        executed = []
        async with self.engine.begin() as conn:
            for statement in SCHEMA_STATEMENTS:
                await conn.execute(text(statement))
                executed.append(' '.join(statement.split()))
        logger.info('postgres_client.schema_ready', statements=len(executed))
        return executed

    # =========================================================================
    # Execution
    # =========================================================================

    async def execute_query(
        self,
        sql: str,
        parameters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Execute a read statement.

        Args:
            sql: SQL with ``:name`` bind parameters
            parameters: Bind values

        Returns:
            Result rows as dicts
        """
        async with self.engine.connect() as conn:
            result = await conn.execute(text(sql), parameters or {})
            return [dict(row) for row in result.mappings().all()]

    async def execute_write(
        self,
        sql: str,
        parameters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """
        Execute a write statement in its own transaction.

        Args:
            sql: SQL with ``:name`` bind parameters (use RETURNING to get rows back)
            parameters: Bind values

        Returns:
            Returned rows as dicts (empty when the statement returns none)
        """
        async with self.engine.begin() as conn:
            result = await conn.execute(text(sql), parameters or {})
            if not result.returns_rows:
                return []
            return [dict(row) for row in result.mappings().all()]
