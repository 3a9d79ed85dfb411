"""
Tests for the background session sweeper.
"""

import asyncio
import os
import time
from datetime import datetime, timedelta, timezone

import pytest

from dzi_ingest.services.session_sweeper import SessionSweeper


class TestSessionSweeper:

    @pytest.mark.asyncio
    async def test_sweep_once(self, make_orchestrator, scratch_dir):
        orchestrator = make_orchestrator()
        session = orchestrator.open_session()
        await orchestrator.receive_chunk(session.id, 0, b"x")
        session.last_activity_at = datetime.now(timezone.utc) - timedelta(hours=2)

        leftover = scratch_dir / "gone_assembled.png"
        leftover.write_bytes(b"old")
        past = time.time() - 3 * 3600
        os.utime(leftover, (past, past))

        sweeper = SessionSweeper(orchestrator, scratch_dir, session_ttl=timedelta(hours=1))
        removed = await sweeper.sweep_once()

        assert removed == 2
        assert session.id not in orchestrator.sessions
        assert list(scratch_dir.iterdir()) == []

    @pytest.mark.asyncio
    async def test_worker_runs_on_interval(self, make_orchestrator, scratch_dir):
        orchestrator = make_orchestrator()
        session = orchestrator.open_session()
        session.last_activity_at = datetime.now(timezone.utc) - timedelta(hours=2)

        sweeper = SessionSweeper(orchestrator, scratch_dir, session_ttl=timedelta(hours=1), interval_seconds=0.01)
        await sweeper.start_worker()
        try:
            for _ in range(100):
                if session.id not in orchestrator.sessions:
                    break
                await asyncio.sleep(0.01)
        finally:
            await sweeper.shutdown()

        assert session.id not in orchestrator.sessions
        assert sweeper.worker_task is None

    @pytest.mark.asyncio
    async def test_worker_survives_errors(self, make_orchestrator, scratch_dir, monkeypatch):
        orchestrator = make_orchestrator()
        calls = []

        async def _flaky(max_age, now=None):
            calls.append(max_age)
            if len(calls) == 1:
                raise RuntimeError("disk hiccup")
            return 0

        monkeypatch.setattr(orchestrator, "sweep_expired", _flaky)
        sweeper = SessionSweeper(orchestrator, scratch_dir, session_ttl=timedelta(hours=1), interval_seconds=0.01)
        await sweeper.start_worker()
        try:
            for _ in range(100):
                if len(calls) >= 2:
                    break
                await asyncio.sleep(0.01)
        finally:
            await sweeper.shutdown()

        assert len(calls) >= 2

    @pytest.mark.asyncio
    async def test_double_start_rejected(self, make_orchestrator, scratch_dir):
        sweeper = SessionSweeper(make_orchestrator(), scratch_dir, session_ttl=timedelta(hours=1))
        await sweeper.start_worker()
        try:
            with pytest.raises(RuntimeError):
                await sweeper.start_worker()
        finally:
            await sweeper.shutdown()

    @pytest.mark.asyncio
    async def test_shutdown_without_start(self, make_orchestrator, scratch_dir):
        sweeper = SessionSweeper(make_orchestrator(), scratch_dir, session_ttl=timedelta(hours=1))
        await sweeper.shutdown()
        await sweeper.shutdown()
