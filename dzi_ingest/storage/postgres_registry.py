"""
PostgreSQL image registry.

Table: uploaded_images
Columns: id (BIGSERIAL PK), dzi_base_name, dzi_path, original_filename,
         upload_id (UNIQUE), uploaded_at (TIMESTAMPTZ)

Each append is a single INSERT, so concurrent completions never lose
records the way a read-modify-write document can.
"""

import asyncio
import logging
from datetime import datetime
from typing import List

import asyncpg

from dzi_ingest.errors import PersistenceError
from dzi_ingest.models.records import ImageRecord
from dzi_ingest.storage.image_registry import ImageRegistryBase

logger = logging.getLogger(__name__)

CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS uploaded_images (
    id BIGSERIAL PRIMARY KEY,
    dzi_base_name TEXT NOT NULL,
    dzi_path TEXT NOT NULL,
    original_filename TEXT NOT NULL,
    upload_id TEXT NOT NULL UNIQUE,
    uploaded_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
)
"""


def _parse_iso(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def _format_iso(value: datetime) -> str:
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class PostgresImageRegistry(ImageRegistryBase):
    """
    Async registry backed by the uploaded_images table.

    Uses asyncpg connection pool (injected via constructor).
    """

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def _retry(self, func, *args, max_retries: int = 3, **kwargs):
        """Retry on connection errors with exponential backoff."""
        for attempt in range(max_retries):
            try:
                return await func(*args, **kwargs)
            except (asyncpg.exceptions.PostgresError, ConnectionRefusedError) as e:
                if attempt == max_retries - 1:
                    logger.error(f"Max retries reached. Last error: {e}")
                    raise
                delay = 0.1 * (2 ** attempt)
                logger.warning(f"Attempt {attempt + 1} failed: {e}. Retrying in {delay}s...")
                await asyncio.sleep(delay)

    async def ensure_schema(self):
        async with self.pool.acquire() as conn:
            await conn.execute(CREATE_TABLE_SQL)
        logger.info("uploaded_images table ready")

    async def append(self, record: ImageRecord) -> None:
        async def _insert():
            async with self.pool.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO uploaded_images
                        (dzi_base_name, dzi_path, original_filename, upload_id, uploaded_at)
                    VALUES ($1, $2, $3, $4, $5)
                    """,
                    record.dzi_base_name,
                    record.dzi_path,
                    record.original_filename,
                    record.upload_id,
                    _parse_iso(record.uploaded_at),
                )

        try:
            await self._retry(_insert)
        except (asyncpg.exceptions.PostgresError, OSError) as e:
            raise PersistenceError(str(e)) from e

        logger.info(f"Recorded upload: upload_id={record.upload_id}, dzi={record.dzi_base_name}")

    async def list_all(self) -> List[ImageRecord]:
        async def _fetch():
            async with self.pool.acquire() as conn:
                return await conn.fetch(
                    """
                    SELECT dzi_base_name, dzi_path, original_filename, upload_id, uploaded_at
                    FROM uploaded_images
                    ORDER BY id
                    """
                )

        try:
            rows = await self._retry(_fetch)
        except (asyncpg.exceptions.PostgresError, OSError) as e:
            logger.warning(f"Failed to list uploaded images: {e}")
            return []

        return [
            ImageRecord(
                dzi_base_name=row["dzi_base_name"],
                dzi_path=row["dzi_path"],
                original_filename=row["original_filename"],
                upload_id=row["upload_id"],
                uploaded_at=_format_iso(row["uploaded_at"]),
            )
            for row in rows
        ]

    async def health_check(self) -> str:
        """
        Check PostgreSQL connectivity.

        Returns:
            "connected" or error string
        """
        try:
            async with self.pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
            return "connected"
        except Exception as e:
            return f"error: {str(e)}"

    async def close(self) -> None:
        await self.pool.close()
