# storage/chunk_store.py
import logging
import re
import uuid
from pathlib import Path
from typing import List, Optional

import aiofiles
import aiofiles.os

logger = logging.getLogger(__name__)

# uploadId is client-echoed; keep it from escaping the scratch directory
_SAFE_SESSION_ID = re.compile(r"^[A-Za-z0-9_\-]{1,128}$")


def is_safe_session_id(session_id: str) -> bool:
    return bool(session_id) and bool(_SAFE_SESSION_ID.match(session_id))


class ChunkStore:
    """청크 스크래치 저장소

    One file per (session_id, index), named ``<session_id>.<index>`` so a
    re-sent index overwrites the earlier copy. Sessions are partitioned by
    file name only, no cross-session locking is needed.
    """

    def __init__(self, scratch_dir: Path):
        self.scratch_dir = Path(scratch_dir)

        # 디렉토리 생성
        self.scratch_dir.mkdir(parents=True, exist_ok=True)

    def chunk_path(self, session_id: str, index: int) -> Path:
        if not is_safe_session_id(session_id):
            raise ValueError(f"Invalid session id: {session_id!r}")
        if index < 0:
            raise ValueError(f"Chunk index must be non-negative, got {index}")
        return self.scratch_dir / f"{session_id}.{index}"

    async def put(self, session_id: str, index: int, data: bytes) -> int:
        """청크 저장 (같은 index는 덮어쓰기)"""
        final_path = self.chunk_path(session_id, index)
        tmp_path = final_path.with_name(f".{final_path.name}.{uuid.uuid4().hex[:8]}.part")

        try:
            async with aiofiles.open(tmp_path, "wb") as f:
                await f.write(data)
            await aiofiles.os.replace(tmp_path, final_path)
        except Exception:
            try:
                tmp_path.unlink(missing_ok=True)
            except OSError:
                pass
            raise

        logger.debug(f"Stored chunk {index} for session {session_id} ({len(data)} bytes)")
        return len(data)

    async def read(self, session_id: str, index: int) -> Optional[bytes]:
        """청크 읽기. 없으면 None"""
        path = self.chunk_path(session_id, index)
        try:
            async with aiofiles.open(path, "rb") as f:
                return await f.read()
        except FileNotFoundError:
            return None

    async def delete(self, session_id: str, index: int) -> bool:
        path = self.chunk_path(session_id, index)
        try:
            await aiofiles.os.remove(path)
            return True
        except FileNotFoundError:
            return False

    def indices(self, session_id: str) -> List[int]:
        """저장된 청크 index 목록 (오름차순)"""
        if not is_safe_session_id(session_id):
            return []

        prefix = f"{session_id}."
        found = []
        for path in self.scratch_dir.glob(f"{session_id}.*"):
            suffix = path.name[len(prefix):]
            if suffix.isdigit():
                found.append(int(suffix))
        return sorted(found)

    async def purge(self, session_id: str) -> int:
        """세션의 모든 청크 삭제"""
        removed = 0
        for index in self.indices(session_id):
            if await self.delete(session_id, index):
                removed += 1

        if removed:
            logger.info(f"Purged {removed} chunk(s) for session {session_id}")
        return removed

    def stale_session_ids(self, cutoff: float) -> List[str]:
        """Session ids whose newest chunk file is older than ``cutoff`` (epoch seconds)."""
        newest = {}
        for path in self.scratch_dir.iterdir():
            session_id, _, suffix = path.name.rpartition(".")
            if not session_id or not suffix.isdigit() or not is_safe_session_id(session_id):
                continue
            try:
                mtime = path.stat().st_mtime
            except FileNotFoundError:
                continue
            newest[session_id] = max(mtime, newest.get(session_id, 0.0))
        return sorted(sid for sid, mtime in newest.items() if mtime < cutoff)
