from pathlib import Path
from types import SimpleNamespace

import pytest
import pytest_asyncio
from sqlalchemy import func, select
from sqlalchemy.dialects import mysql, postgresql

from core.errors import ConfigurationError
from import_scout.models import OpportunityReport, ResearchSession
from import_scout.storage import InMemorySessionStore, SqlSessionStore, assessments, session_data, upsert_statement


@pytest_asyncio.fixture
async def sql_store(tmp_path: Path):
    store = SqlSessionStore(f"sqlite+aiosqlite:///{tmp_path / 'sessions.db'}")
    yield store
    await store.close()


def _report(score: float) -> str:
    return OpportunityReport(opportunity_score=score, overall_verdict="ok").model_dump_json()


@pytest.mark.asyncio
async def test_sql_store_last_write_wins_per_stage(sql_store: SqlSessionStore):
    await sql_store.put("s-1", "sourcing", {"attempt": 1})
    await sql_store.put("s-1", "sourcing", {"attempt": 2})
    await sql_store.put("s-1", "trends", {"keyword": "earbuds"})
    await sql_store.put("s-2", "sourcing", {"attempt": 9})

    assert await sql_store.get("s-1", "sourcing") == {"attempt": 2}
    assert await sql_store.get_all("s-1") == {"sourcing": {"attempt": 2}, "trends": {"keyword": "earbuds"}}
    assert await sql_store.get("s-1", "market") is None

    async with sql_store._engine.connect() as conn:
        rows = (
            await conn.execute(
                select(func.count()).select_from(session_data).where(
                    session_data.c.session_id == "s-1", session_data.c.data_type == "sourcing"
                )
            )
        ).scalar_one()
    assert rows == 1


@pytest.mark.asyncio
async def test_sql_store_sessions_round_trip(sql_store: SqlSessionStore):
    await sql_store.create_session(ResearchSession(session_id="s-1", raw_query="wireless earbuds", country_code="CL"))
    session = await sql_store.get_session("s-1")

    assert session.raw_query == "wireless earbuds"
    assert session.country_code == "CL"
    assert await sql_store.get_session("missing") is None


@pytest.mark.asyncio
async def test_sql_store_assessment_upsert_keeps_one_row(sql_store: SqlSessionStore):
    assert await sql_store.get_report("s-1") is None
    await sql_store.save_assessment("s-1", "{}", _report(40))
    await sql_store.save_assessment("s-1", "{}", _report(75))

    report = await sql_store.get_report("s-1")
    assert report.opportunity_score == 75

    async with sql_store._engine.connect() as conn:
        count = (await conn.execute(select(func.count()).select_from(assessments))).scalar_one()
    assert count == 1


@pytest.mark.asyncio
async def test_memory_store_matches_sql_semantics():
    store = InMemorySessionStore()
    await store.put("s-1", "sourcing", {"attempt": 1})
    await store.put("s-1", "sourcing", {"attempt": 2})
    await store.save_assessment("s-1", "{}", _report(40))
    first_id = (await store.get_assessment("s-1")).id
    await store.save_assessment("s-1", "{}", _report(60))

    assert await store.get_all("s-1") == {"sourcing": {"attempt": 2}}
    stored = await store.get_assessment("s-1")
    assert stored.id == first_id
    assert stored.report().opportunity_score == 60


def test_upserts_compile_to_native_statements():
    values = {"session_id": "s-1", "data_type": "sourcing", "data_json": "{}", "created_at": 1}
    conflict, update = ("session_id", "data_type"), ("data_json", "created_at")

    pg = str(upsert_statement("postgresql", session_data, values, conflict, update).compile(dialect=postgresql.dialect()))
    my = str(upsert_statement("mysql", session_data, values, conflict, update).compile(dialect=mysql.dialect()))

    assert "ON CONFLICT (session_id, data_type) DO UPDATE" in pg
    assert "ON DUPLICATE KEY UPDATE" in my


def test_sql_store_rejects_dialects_without_upsert():
    engine = SimpleNamespace(dialect=SimpleNamespace(name="oracle"))
    with pytest.raises(ConfigurationError) as excinfo:
        SqlSessionStore("oracle://", engine=engine)
    assert excinfo.value.details["dialect"] == "oracle"
