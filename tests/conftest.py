import io
import os
import sys
import tempfile
from pathlib import Path

import pytest
from PIL import Image

# Ensure repo root on sys.path and keep import-time settings away from the source tree.
ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", tempfile.mkdtemp(prefix="dzi-ingest-test-"))
os.environ.setdefault("LOG_TO_FILE", "false")

from dzi_ingest.services.assembler import Assembler
from dzi_ingest.services.format_gate import FormatGate
from dzi_ingest.services.ingestion_service import IngestionOrchestrator
from dzi_ingest.services.tile_generator import TilePyramidGenerator
from dzi_ingest.storage.chunk_store import ChunkStore
from dzi_ingest.storage.image_registry import InMemoryImageRegistry
from dzi_ingest.storage.session_registry import UploadSessionRegistry
from dzi_ingest.tile_engines.pillow import PillowTileEngine


def image_bytes(width: int, height: int, fmt: str = "PNG", mode: str = "RGB", noise: bool = False) -> bytes:
    if noise:
        img = Image.frombytes(mode, (width, height), os.urandom(width * height * len(mode)))
    else:
        color = 128 if len(mode) == 1 else tuple(200 - 40 * i for i in range(len(mode)))
        img = Image.new(mode, (width, height), color=color)
    buf = io.BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


def split_bytes(data: bytes, chunk_size: int) -> list:
    return [data[i:i + chunk_size] for i in range(0, len(data), chunk_size)]


@pytest.fixture
def scratch_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def tiles_dir(tmp_path):
    path = tmp_path / "tiles"
    path.mkdir()
    return path


@pytest.fixture
def chunk_store(scratch_dir):
    return ChunkStore(scratch_dir)


@pytest.fixture
def registry():
    return InMemoryImageRegistry()


@pytest.fixture
def make_orchestrator(scratch_dir, tiles_dir, chunk_store):
    """Factory so tests can swap the registry or chunk cleanup mode."""

    def _make(registry=None, delete_consumed=True, engine=None, **limits):
        return IngestionOrchestrator(
            sessions=UploadSessionRegistry(),
            chunk_store=chunk_store,
            format_gate=FormatGate(),
            assembler=Assembler(chunk_store, scratch_dir, delete_consumed=delete_consumed),
            generator=TilePyramidGenerator(engine or PillowTileEngine(), tiles_dir),
            registry=registry if registry is not None else InMemoryImageRegistry(),
            dzi_url_prefix="./tiles/uploaded",
            **limits,
        )

    return _make
