"""
Tests for database connection management.

Covers URL conversion, engine and session factory creation, health
checks and table creation against file-backed SQLite.
"""

from unittest.mock import MagicMock

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError
from sqlalchemy.pool import StaticPool

from carsline.database.connection import (
    _convert_database_url_to_async,
    check_database_health,
    create_engine,
    create_session_factory,
)


class TestDatabaseUrl:
    def test_postgres_url_gets_asyncpg_driver(self):
        assert (
            _convert_database_url_to_async("postgresql://u:p@db:5432/carsline")
            == "postgresql+asyncpg://u:p@db:5432/carsline"
        )

    @pytest.mark.parametrize(
        "url",
        ["postgresql+asyncpg://u:p@db/carsline", "sqlite+aiosqlite:///./carsline.db"],
    )
    def test_async_urls_unchanged(self, url):
        assert _convert_database_url_to_async(url) == url


class TestEngine:
    @pytest.mark.parametrize(
        "url",
        [
            "sqlite+aiosqlite:///:memory:",
            "sqlite+aiosqlite://",
            "sqlite+aiosqlite:///file:orders?mode=memory&cache=shared&uri=true",
        ],
    )
    def test_memory_sqlite_rejected(self, url):
        with pytest.raises(ValueError, match="In-memory SQLite"):
            create_engine(url)

    @pytest.mark.asyncio
    async def test_file_sqlite_gets_pooled_connections(self, tmp_path):
        engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'orders.db'}")
        try:
            assert not isinstance(engine.pool, StaticPool)
            assert engine.dialect.name == "sqlite"
        finally:
            await engine.dispose()

    def test_session_factory_keeps_objects_after_commit(self, engine):
        factory = create_session_factory(engine)

        assert factory.kw["expire_on_commit"] is False
        assert factory.kw["autoflush"] is False

    @pytest.mark.asyncio
    async def test_tables_created(self, engine):
        async with engine.connect() as conn:
            tables = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())

        assert {"orders", "order_line_items", "service_types", "extra_services", "service_history"} <= set(tables)

    @pytest.mark.asyncio
    async def test_order_number_is_unique(self, engine):
        async with engine.connect() as conn:
            constraints = await conn.run_sync(
                lambda sync_conn: inspect(sync_conn).get_unique_constraints("orders")
            )

        assert any(c["column_names"] == ["order_number"] for c in constraints)


class TestHealthCheck:
    @pytest.mark.asyncio
    async def test_healthy_database(self, engine):
        assert await check_database_health(engine, max_retries=1) is True

    @pytest.mark.asyncio
    async def test_unreachable_database(self):
        engine = MagicMock()
        engine.connect.side_effect = OperationalError("SELECT 1", {}, Exception("refused"))

        healthy = await check_database_health(engine, max_retries=2, retry_delay=0)

        assert healthy is False
        assert engine.connect.call_count == 2
