"""
Tests for the PostgreSQL registry against a mocked asyncpg pool.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from dzi_ingest.errors import PersistenceError
from dzi_ingest.models.records import ImageRecord
from dzi_ingest.storage.postgres_registry import PostgresImageRegistry


def _mock_pool(conn):
    pool = MagicMock()
    acquire = MagicMock()
    acquire.__aenter__ = AsyncMock(return_value=conn)
    acquire.__aexit__ = AsyncMock(return_value=False)
    pool.acquire.return_value = acquire
    pool.close = AsyncMock()
    return pool


def _record():
    return ImageRecord(
        dzi_base_name="slide",
        dzi_path="./tiles/uploaded/slide.dzi",
        original_filename="slide.tif",
        upload_id="1718000000000-abcd1234",
        uploaded_at="2024-06-10T06:13:20.000Z",
    )


class TestPostgresImageRegistry:

    @pytest.mark.asyncio
    async def test_ensure_schema(self):
        conn = MagicMock()
        conn.execute = AsyncMock()
        registry = PostgresImageRegistry(_mock_pool(conn))

        await registry.ensure_schema()

        assert "CREATE TABLE IF NOT EXISTS uploaded_images" in conn.execute.call_args[0][0]

    @pytest.mark.asyncio
    async def test_append_inserts_row(self):
        conn = MagicMock()
        conn.execute = AsyncMock()
        registry = PostgresImageRegistry(_mock_pool(conn))

        await registry.append(_record())

        args = conn.execute.call_args[0]
        assert "INSERT INTO uploaded_images" in args[0]
        assert args[1:5] == ("slide", "./tiles/uploaded/slide.dzi", "slide.tif", "1718000000000-abcd1234")
        assert args[5] == datetime(2024, 6, 10, 6, 13, 20, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_append_failure_is_persistence_error(self, monkeypatch):
        conn = MagicMock()
        conn.execute = AsyncMock(side_effect=ConnectionRefusedError("connection refused"))
        registry = PostgresImageRegistry(_mock_pool(conn))
        monkeypatch.setattr("dzi_ingest.storage.postgres_registry.asyncio.sleep", AsyncMock())

        with pytest.raises(PersistenceError) as exc:
            await registry.append(_record())

        assert conn.execute.await_count == 3
        assert "connection refused" in exc.value.message

    @pytest.mark.asyncio
    async def test_list_all_maps_rows(self):
        conn = MagicMock()
        conn.fetch = AsyncMock(return_value=[{
            "dzi_base_name": "slide",
            "dzi_path": "./tiles/uploaded/slide.dzi",
            "original_filename": "slide.tif",
            "upload_id": "1718000000000-abcd1234",
            "uploaded_at": datetime(2024, 6, 10, 6, 13, 20, tzinfo=timezone.utc),
        }])
        registry = PostgresImageRegistry(_mock_pool(conn))

        records = await registry.list_all()

        assert records == [_record()]
        assert "ORDER BY id" in conn.fetch.call_args[0][0]

    @pytest.mark.asyncio
    async def test_list_all_failure_is_empty(self, monkeypatch):
        conn = MagicMock()
        conn.fetch = AsyncMock(side_effect=ConnectionRefusedError("down"))
        registry = PostgresImageRegistry(_mock_pool(conn))
        monkeypatch.setattr("dzi_ingest.storage.postgres_registry.asyncio.sleep", AsyncMock())

        assert await registry.list_all() == []

    @pytest.mark.asyncio
    async def test_health_check(self):
        conn = MagicMock()
        conn.fetchval = AsyncMock(return_value=1)
        registry = PostgresImageRegistry(_mock_pool(conn))

        assert await registry.health_check() == "connected"

    @pytest.mark.asyncio
    async def test_close(self):
        pool = _mock_pool(MagicMock())
        await PostgresImageRegistry(pool).close()
        pool.close.assert_awaited_once()
