# storage/session_registry.py
import asyncio
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

from dzi_ingest.models.records import IngestionStage, UploadSession

logger = logging.getLogger(__name__)


class SessionCollision(RuntimeError):
    """A freshly generated session id was already live."""


class UploadSessionRegistry:
    """In-process registry of in-flight upload sessions.

    Sessions live only in memory; chunk files left behind by a restart are
    reclaimed by the scratch sweep, not by this registry.
    """

    def __init__(self):
        self._sessions: Dict[str, UploadSession] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    def _new_id(self) -> str:
        # millisecond timestamp like the web client expects, plus a random suffix
        return f"{int(datetime.now(timezone.utc).timestamp() * 1000)}-{uuid.uuid4().hex[:8]}"

    def open_session(self) -> UploadSession:
        session_id = self._new_id()
        if session_id in self._sessions:
            raise SessionCollision(f"Session id collision: {session_id}")

        session = UploadSession(id=session_id, stage=IngestionStage.RECEIVING)
        self._sessions[session_id] = session
        self._locks[session_id] = asyncio.Lock()

        logger.info(f"[SESSION] opened {session_id} (live={len(self._sessions)})")
        return session

    def get(self, session_id: str) -> Optional[UploadSession]:
        return self._sessions.get(session_id)

    def lock_for(self, session_id: str) -> Optional[asyncio.Lock]:
        """Single-flight guard for completing one session."""
        return self._locks.get(session_id)

    def touch(self, session_id: str) -> bool:
        session = self._sessions.get(session_id)
        if session is None:
            return False
        session.touch()
        return True

    def retire(self, session_id: str) -> Optional[UploadSession]:
        session = self._sessions.pop(session_id, None)
        self._locks.pop(session_id, None)
        if session is not None:
            logger.info(f"[SESSION] retired {session_id} at stage={session.stage.value}")
        return session

    def expired(self, max_age: timedelta, now: Optional[datetime] = None) -> List[UploadSession]:
        """Sessions idle for longer than max_age that are not mid-completion."""
        now = now or datetime.now(timezone.utc)
        cutoff = now - max_age
        stale = []
        for session in self._sessions.values():
            lock = self._locks.get(session.id)
            if lock is not None and lock.locked():
                continue
            if session.last_activity_at < cutoff:
                stale.append(session)
        return stale

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions
