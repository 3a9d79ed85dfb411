# storage/image_registry.py
"""
Image registry backends.

The registry is an append-only list of ImageRecord entries read by the
viewer layer. Every backend serializes appends itself, so callers never
need an external lock.
"""

import asyncio
import json
import logging
import os
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List

import aiofiles
import aiofiles.os
from pydantic import ValidationError

from dzi_ingest.errors import PersistenceError
from dzi_ingest.models.records import ImageRecord

logger = logging.getLogger(__name__)


class ImageRegistryBase(ABC):
    """이미지 레지스트리 인터페이스"""

    @abstractmethod
    async def append(self, record: ImageRecord) -> None:
        """Persist one record. Raises PersistenceError on failure."""
        pass

    @abstractmethod
    async def list_all(self) -> List[ImageRecord]:
        """All records in append order; never raises for missing/corrupt data."""
        pass

    async def health_check(self) -> str:
        """Backend status for the health endpoint; "ok" or "connected" when appends can succeed, otherwise an error text."""
        return "ok"

    async def close(self) -> None:
        pass


class InMemoryImageRegistry(ImageRegistryBase):
    def __init__(self):
        self._records: List[ImageRecord] = []
        self._lock = asyncio.Lock()

    async def append(self, record: ImageRecord) -> None:
        async with self._lock:
            self._records.append(record)

    async def list_all(self) -> List[ImageRecord]:
        return list(self._records)


class JsonImageRegistry(ImageRegistryBase):
    """Single JSON document holding an array of records.

    append() is a read-modify-write of the whole document. It is guarded by
    one lock per registry instance and the document is swapped in with
    os.replace, so a reader sees either the old or the new array.
    Only one registry instance may own a given path within a process.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = asyncio.Lock()

    async def _read_document(self) -> list:
        async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
            raw = await f.read()
        if not raw.strip():
            return []
        data = json.loads(raw)
        if not isinstance(data, list):
            raise ValueError(f"Registry document is {type(data).__name__}, expected list")
        return data

    async def _write_document(self, entries: list) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(f".{self.path.name}.{uuid.uuid4().hex[:8]}.tmp")
        try:
            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                await f.write(json.dumps(entries, indent=2, ensure_ascii=False))
                await f.flush()
            await aiofiles.os.replace(tmp_path, self.path)
        finally:
            if tmp_path.exists():
                os.unlink(tmp_path)

    async def append(self, record: ImageRecord) -> None:
        async with self._lock:
            try:
                try:
                    entries = await self._read_document()
                except FileNotFoundError:
                    entries = []

                entries.append(record.to_document())
                await self._write_document(entries)
            except (OSError, ValueError) as e:
                # corrupt document or unwritable path; the existing file is left untouched
                logger.error(f"[REGISTRY] append failed for {record.dzi_base_name}: {e}")
                raise PersistenceError(str(e)) from e

        logger.info(f"[REGISTRY] appended {record.dzi_base_name} (total={len(entries)})")

    async def health_check(self) -> str:
        # the document's directory is created on first append
        directory = self.path.parent
        while not directory.exists() and directory != directory.parent:
            directory = directory.parent
        if not os.access(directory, os.W_OK):
            return f"error: {directory} is not writable"
        return "ok"

    async def list_all(self) -> List[ImageRecord]:
        try:
            entries = await self._read_document()
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as e:
            logger.warning(f"[REGISTRY] unreadable document {self.path}: {e}")
            return []

        records = []
        for entry in entries:
            try:
                records.append(ImageRecord.model_validate(entry))
            except ValidationError as e:
                logger.warning(f"[REGISTRY] skipping malformed entry: {e.error_count()} error(s)")
        return records
