from __future__ import annotations

import asyncio
import json
import time
import uuid
from typing import Any, Dict, Optional

import structlog
from sqlalchemy import BigInteger, Column, MetaData, String, Table, Text, select
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from core.errors import ConfigurationError

from .config import Settings
from .interfaces import SessionStore
from .models import ResearchSession, StoredAssessment

logger = structlog.get_logger(__name__)

metadata = MetaData()

research_sessions = Table(
    "research_sessions",
    metadata,
    Column("session_id", String(64), primary_key=True),
    Column("raw_query", Text, nullable=False),
    Column("country_code", String(8), nullable=False),
    Column("created_at", BigInteger, nullable=False),
)

session_data = Table(
    "session_data",
    metadata,
    Column("session_id", String(64), primary_key=True),
    Column("data_type", String(32), primary_key=True),
    Column("data_json", Text, nullable=False),
    Column("created_at", BigInteger, nullable=False),
)

assessments = Table(
    "assessments",
    metadata,
    Column("id", String(64), primary_key=True),
    Column("session_id", String(64), nullable=False, unique=True),
    Column("context_json", Text, nullable=False),
    Column("report_json", Text, nullable=False),
    Column("created_at", BigInteger, nullable=False),
)

_UPSERT_DIALECTS = {"sqlite": sqlite.insert, "postgresql": postgresql.insert, "mysql": mysql.insert}


def upsert_statement(dialect: str, table: Table, values: Dict[str, Any], conflict: tuple, update: tuple) -> Any:
    """Single-statement insert-or-update for ``dialect``; ``conflict`` names the unique key."""
    statement = _UPSERT_DIALECTS[dialect](table).values(**values)
    if dialect == "mysql":
        return statement.on_duplicate_key_update(**{name: statement.inserted[name] for name in update})
    return statement.on_conflict_do_update(
        index_elements=[table.c[name] for name in conflict],
        set_={name: statement.excluded[name] for name in update},
    )


def _now_ms() -> int:
    return int(time.time() * 1000)


class SqlSessionStore(SessionStore):
    """Session store on SQLAlchemy's async engine (aiosqlite by default).

    Stage rows are keyed by ``(session_id, data_type)`` and assessments by
    ``session_id``; both are written with the dialect's native upsert
    (``ON CONFLICT DO UPDATE`` or ``ON DUPLICATE KEY UPDATE``).
    The schema is created lazily on first use.
    """

    def __init__(self, database_url: str, *, engine: Optional[AsyncEngine] = None, echo: bool = False) -> None:
        self._engine = engine or create_async_engine(database_url, echo=echo)
        if self._engine.dialect.name not in _UPSERT_DIALECTS:
            raise ConfigurationError(
                "Session store needs a database with native upserts",
                dialect=self._engine.dialect.name,
                supported=sorted(_UPSERT_DIALECTS),
            )
        self._schema_ready = False
        self._schema_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "SqlSessionStore":
        return cls(settings.database_url)

    async def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        async with self._schema_lock:
            if self._schema_ready:
                return
            async with self._engine.begin() as conn:
                await conn.run_sync(metadata.create_all)
            self._schema_ready = True
            logger.info("session_store.schema_ready", dialect=self._engine.dialect.name)

    async def _upsert(self, table: Table, values: Dict[str, Any], conflict: tuple, update: tuple) -> None:
        await self._ensure_schema()
        statement = upsert_statement(self._engine.dialect.name, table, values, conflict, update)
        async with self._engine.begin() as conn:
            await conn.execute(statement)

    async def create_session(self, session: ResearchSession) -> None:
        await self._upsert(
            research_sessions,
            {
                "session_id": session.session_id,
                "raw_query": session.raw_query,
                "country_code": session.country_code,
                "created_at": int(session.created_at.timestamp() * 1000),
            },
            ("session_id",),
            ("raw_query", "country_code"),
        )

    async def get_session(self, session_id: str) -> Optional[ResearchSession]:
        await self._ensure_schema()
        async with self._engine.connect() as conn:
            row = (
                await conn.execute(select(research_sessions).where(research_sessions.c.session_id == session_id))
            ).mappings().first()
        if row is None:
            return None
        return ResearchSession(
            session_id=row["session_id"],
            raw_query=row["raw_query"],
            country_code=row["country_code"],
            created_at=row["created_at"] / 1000,
        )

    async def put(self, session_id: str, stage: str, value: Dict[str, Any]) -> None:
        await self._upsert(
            session_data,
            {
                "session_id": session_id,
                "data_type": stage,
                "data_json": json.dumps(value),
                "created_at": _now_ms(),
            },
            ("session_id", "data_type"),
            ("data_json", "created_at"),
        )

    async def get(self, session_id: str, stage: str) -> Optional[Dict[str, Any]]:
        await self._ensure_schema()
        query = select(session_data.c.data_json).where(
            session_data.c.session_id == session_id,
            session_data.c.data_type == stage,
        )
        async with self._engine.connect() as conn:
            raw = (await conn.execute(query)).scalar_one_or_none()
        return json.loads(raw) if raw is not None else None

    async def get_all(self, session_id: str) -> Dict[str, Dict[str, Any]]:
        await self._ensure_schema()
        query = select(session_data.c.data_type, session_data.c.data_json).where(
            session_data.c.session_id == session_id
        )
        async with self._engine.connect() as conn:
            rows = (await conn.execute(query)).all()
        return {data_type: json.loads(data_json) for data_type, data_json in rows}

    async def get_assessment(self, session_id: str) -> Optional[StoredAssessment]:
        await self._ensure_schema()
        async with self._engine.connect() as conn:
            row = (
                await conn.execute(select(assessments).where(assessments.c.session_id == session_id))
            ).mappings().first()
        return StoredAssessment(**dict(row)) if row is not None else None

    async def save_assessment(self, session_id: str, context_json: str, report_json: str) -> None:
        await self._upsert(
            assessments,
            {
                "id": str(uuid.uuid4()),
                "session_id": session_id,
                "context_json": context_json,
                "report_json": report_json,
                "created_at": _now_ms(),
            },
            ("session_id",),
            ("context_json", "report_json", "created_at"),
        )

    async def close(self) -> None:
        await self._engine.dispose()


class InMemorySessionStore(SessionStore):
    """Dict-backed store with the same overwrite semantics; used by tests and ``--memory`` runs."""

    def __init__(self) -> None:
        self.sessions: Dict[str, ResearchSession] = {}
        self.data: Dict[tuple, str] = {}
        self.assessments: Dict[str, StoredAssessment] = {}

    async def create_session(self, session: ResearchSession) -> None:
        self.sessions[session.session_id] = session

    async def get_session(self, session_id: str) -> Optional[ResearchSession]:
        return self.sessions.get(session_id)

    async def put(self, session_id: str, stage: str, value: Dict[str, Any]) -> None:
        self.data[(session_id, stage)] = json.dumps(value)

    async def get(self, session_id: str, stage: str) -> Optional[Dict[str, Any]]:
        raw = self.data.get((session_id, stage))
        return json.loads(raw) if raw is not None else None

    async def get_all(self, session_id: str) -> Dict[str, Dict[str, Any]]:
        return {stage: json.loads(raw) for (sid, stage), raw in self.data.items() if sid == session_id}

    async def get_assessment(self, session_id: str) -> Optional[StoredAssessment]:
        return self.assessments.get(session_id)

    async def save_assessment(self, session_id: str, context_json: str, report_json: str) -> None:
        existing = self.assessments.get(session_id)
        self.assessments[session_id] = StoredAssessment(
            id=existing.id if existing else str(uuid.uuid4()),
            session_id=session_id,
            context_json=context_json,
            report_json=report_json,
            created_at=_now_ms(),
        )


def create_session_store(settings: Settings, *, memory: bool = False) -> SessionStore:
    return InMemorySessionStore() if memory else SqlSessionStore.from_settings(settings)


__all__ = [
    "InMemorySessionStore",
    "SqlSessionStore",
    "assessments",
    "create_session_store",
    "metadata",
    "research_sessions",
    "session_data",
]
