# services/ingestion_service.py
"""
Ingestion orchestrator.

Sequences one upload session through

    RECEIVING -> COMPLETING -> VALIDATING -> ASSEMBLING -> TILING -> REGISTERING -> DONE

with FAILED reachable from every stage after INIT. Nothing is retried; a
session is retired at its terminal state and a failed upload has to start
over with a new session.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

from dzi_ingest.errors import (
    ChunkTooLarge,
    IngestionError,
    InvalidChunk,
    PersistenceError,
    SessionNotFound,
)
from dzi_ingest.models.records import IngestionStage, ImageRecord, TileHierarchy, UploadSession
from dzi_ingest.services.assembler import Assembler
from dzi_ingest.services.format_gate import FormatGate, split_filename
from dzi_ingest.services.tile_generator import TilePyramidGenerator
from dzi_ingest.storage.chunk_store import ChunkStore
from dzi_ingest.storage.image_registry import ImageRegistryBase
from dzi_ingest.storage.session_registry import UploadSessionRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompletionResult:
    dzi_path: str
    dzi_base_name: str
    record: ImageRecord
    hierarchy: TileHierarchy


class IngestionOrchestrator:
    def __init__(
        self,
        sessions: UploadSessionRegistry,
        chunk_store: ChunkStore,
        format_gate: FormatGate,
        assembler: Assembler,
        generator: TilePyramidGenerator,
        registry: ImageRegistryBase,
        dzi_url_prefix: str = "./tiles/uploaded",
        max_total_chunks: int = 0,
        max_chunk_bytes: int = 0,
    ):
        self.sessions = sessions
        self.chunk_store = chunk_store
        self.format_gate = format_gate
        self.assembler = assembler
        self.generator = generator
        self.registry = registry
        self.dzi_url_prefix = dzi_url_prefix.rstrip("/")
        self.max_total_chunks = max_total_chunks
        self.max_chunk_bytes = max_chunk_bytes

    # ------------------------------------------------------------------
    # Receiving
    # ------------------------------------------------------------------

    def open_session(self) -> UploadSession:
        return self.sessions.open_session()

    def _receiving_session(self, session_id: str) -> UploadSession:
        session = self.sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        lock = self.sessions.lock_for(session_id)
        if lock is not None and lock.locked():
            raise InvalidChunk(f"Upload session {session_id} is already completing")
        return session

    def admit_chunk(self, session_id: str, index: int, size: int) -> UploadSession:
        """
        Check a chunk against the session and the upload limits before its
        bytes are read.

        Raises:
            SessionNotFound, InvalidChunk, ChunkTooLarge
        """
        session = self._receiving_session(session_id)

        if index < 0:
            raise InvalidChunk(f"Chunk index must be non-negative, got {index}")
        if self.max_total_chunks and index >= self.max_total_chunks:
            raise InvalidChunk(f"Chunk index {index} exceeds the limit of {self.max_total_chunks} chunks")
        if self.max_chunk_bytes and size > self.max_chunk_bytes:
            raise ChunkTooLarge(f"Chunk {index} is {size} bytes, limit is {self.max_chunk_bytes}")
        return session

    async def receive_chunk(self, session_id: str, index: int, data: bytes) -> int:
        session = self.admit_chunk(session_id, index, len(data))

        size = await self.chunk_store.put(session_id, index, data)
        session.touch()
        return size

    def received_indices(self, session_id: str) -> Tuple[UploadSession, List[int]]:
        session = self.sessions.get(session_id)
        if session is None:
            raise SessionNotFound(session_id)
        return session, self.chunk_store.indices(session_id)

    # ------------------------------------------------------------------
    # Completing
    # ------------------------------------------------------------------

    async def complete(self, session_id: str, total_chunks: int, filename: str) -> CompletionResult:
        """
        Run the pipeline for one session.

        Completion is single-flight per session: a concurrent duplicate waits
        for the first one and then finds the session retired.

        Raises:
            IngestionError: subclass naming the failed stage
        """
        lock = self.sessions.lock_for(session_id)
        if lock is None:
            raise SessionNotFound(session_id)

        async with lock:
            session = self.sessions.get(session_id)
            if session is None:
                raise SessionNotFound(session_id)

            started = time.monotonic()
            session.stage = IngestionStage.COMPLETING
            logger.info(f"[COMPLETE] session={session_id}, file={filename!r}, total_chunks={total_chunks}")

            try:
                result = await self._run_pipeline(session, total_chunks, filename)
            except Exception as e:
                session.failed_stage = session.stage
                session.stage = IngestionStage.FAILED
                session.error = e.message if isinstance(e, IngestionError) else f"{type(e).__name__}: {e}"
                logger.warning(
                    f"[COMPLETE] session={session_id} failed at {session.failed_stage.value}: {session.error}"
                )
                raise
            finally:
                self.sessions.retire(session_id)
                await self.chunk_store.purge(session_id)

            session.stage = IngestionStage.DONE
            logger.info(
                f"[COMPLETE] session={session_id} done in {time.monotonic() - started:.2f}s -> {result.dzi_path}"
            )
            return result

    async def _run_pipeline(self, session: UploadSession, total_chunks: int, filename: str) -> CompletionResult:
        session.stage = IngestionStage.VALIDATING
        extension = self.format_gate.validate(filename)
        base_name, _ = split_filename(filename)
        if total_chunks < 1:
            raise InvalidChunk(f"totalChunks must be at least 1, got {total_chunks}", stage="validating")
        if self.max_total_chunks and total_chunks > self.max_total_chunks:
            raise InvalidChunk(
                f"totalChunks {total_chunks} exceeds the limit of {self.max_total_chunks}", stage="validating"
            )

        session.stage = IngestionStage.ASSEMBLING
        assembled = await self.assembler.assemble(session.id, total_chunks, extension)

        session.stage = IngestionStage.TILING
        hierarchy = await self.generator.tile(assembled, base_name)

        session.stage = IngestionStage.REGISTERING
        dzi_path = f"{self.dzi_url_prefix}/{base_name}.dzi"
        record = ImageRecord(
            dzi_base_name=base_name,
            dzi_path=dzi_path,
            original_filename=filename,
            upload_id=session.id,
        )
        try:
            await self.registry.append(record)
        except PersistenceError:
            logger.error(f"[REGISTER] orphaned tile hierarchy left at {hierarchy.descriptor_path}")
            raise
        except Exception as e:
            logger.error(f"[REGISTER] orphaned tile hierarchy left at {hierarchy.descriptor_path}")
            raise PersistenceError(f"{type(e).__name__}: {e}") from e

        return CompletionResult(dzi_path=dzi_path, dzi_base_name=base_name, record=record, hierarchy=hierarchy)

    # ------------------------------------------------------------------
    # Listing / housekeeping
    # ------------------------------------------------------------------

    async def list_images(self) -> List[ImageRecord]:
        return await self.registry.list_all()

    async def sweep_expired(self, max_age: timedelta, now: Optional[float] = None) -> int:
        """
        Retire idle sessions and drop chunk files nobody can complete.

        Returns:
            Number of chunk files removed
        """
        removed = 0
        session_cutoff = datetime.now(timezone.utc) - max_age
        for session in self.sessions.expired(max_age):
            # purge awaits between sessions; a later one may have started completing or received a chunk
            lock = self.sessions.lock_for(session.id)
            if lock is None or lock.locked() or session.last_activity_at >= session_cutoff:
                continue
            self.sessions.retire(session.id)
            removed += await self.chunk_store.purge(session.id)
            logger.info(f"[SWEEP] expired session {session.id} (idle since {session.last_activity_at.isoformat()})")

        # chunk files whose session is gone, e.g. after a restart
        cutoff = (now if now is not None else time.time()) - max_age.total_seconds()
        for session_id in self.chunk_store.stale_session_ids(cutoff):
            if session_id in self.sessions:
                continue
            removed += await self.chunk_store.purge(session_id)
            logger.info(f"[SWEEP] purged chunks of unknown session {session_id}")

        return removed
