# services/session_sweeper.py
import asyncio
import logging
from datetime import timedelta
from pathlib import Path
from typing import Optional

from dzi_ingest.services.ingestion_service import IngestionOrchestrator
from dzi_ingest.utils.temp_file_manager import cleanup_orphaned_scratch

logger = logging.getLogger(__name__)


class SessionSweeper:
    """Background expiry sweep for abandoned upload sessions.

    Runs off the request path on a fixed interval. NOT a singleton: the
    app lifespan owns the single instance and its worker task.
    """

    def __init__(
        self,
        orchestrator: IngestionOrchestrator,
        scratch_dir: Path,
        session_ttl: timedelta,
        interval_seconds: float = 600.0,
    ):
        self.orchestrator = orchestrator
        self.scratch_dir = Path(scratch_dir)
        self.session_ttl = session_ttl
        self.interval_seconds = interval_seconds
        self.worker_task: Optional[asyncio.Task] = None
        self._shutdown_flag = False

        logger.info(f"SessionSweeper initialized (ttl={session_ttl}, interval={interval_seconds}s)")

    async def start_worker(self):
        if self.worker_task is not None and not self.worker_task.done():
            raise RuntimeError("Worker already running")
        self._shutdown_flag = False
        self.worker_task = asyncio.create_task(self._worker_loop())
        logger.info("Session sweeper worker started")

    async def sweep_once(self) -> int:
        removed = await self.orchestrator.sweep_expired(self.session_ttl)
        ttl_hours = self.session_ttl.total_seconds() / 3600
        removed += cleanup_orphaned_scratch(self.scratch_dir, max_age_hours=ttl_hours)
        if removed:
            logger.info(f"Sweep removed {removed} scratch file(s)")
        return removed

    async def _worker_loop(self):
        logger.info("Sweeper loop running...")
        while True:
            try:
                await asyncio.sleep(self.interval_seconds)
                await self.sweep_once()
            except asyncio.CancelledError:
                logger.info("Sweeper loop cancelled")
                break
            except Exception as e:
                logger.error(f"Sweeper loop error: {e}", exc_info=True)

    async def shutdown(self):
        if self._shutdown_flag:
            return
        self._shutdown_flag = True

        if self.worker_task is None:
            return

        self.worker_task.cancel()
        try:
            await self.worker_task
        except asyncio.CancelledError:
            pass

        self.worker_task = None
        logger.info("SessionSweeper shutdown complete")
