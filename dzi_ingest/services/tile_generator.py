# services/tile_generator.py
"""
Tile pyramid generation around a pluggable tile engine.

The engine writes into a private staging directory; only a complete
pyramid is moved under the output directory, so viewers never see a
half-written hierarchy. A previous pyramid with the same base name is
replaced.
"""

import asyncio
import logging
import shutil
import uuid
from pathlib import Path

from dzi_ingest.errors import TilingError
from dzi_ingest.models.records import AssembledImage, TileHierarchy
from dzi_ingest.tile_engines.descriptor import descriptor_path, tiles_dir
from dzi_ingest.tile_interface.base import TileEngineBase, TileEngineError
from dzi_ingest.utils.temp_file_manager import ScratchFile

logger = logging.getLogger(__name__)

STAGING_PREFIX = ".staging-"


class TilePyramidGenerator:
    def __init__(self, engine: TileEngineBase, output_dir: Path):
        self.engine = engine
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        # publishing swaps directories; one swap at a time per output dir
        self._publish_lock = asyncio.Lock()

    async def tile(self, assembled: AssembledImage, output_base_name: str) -> TileHierarchy:
        """
        Tile ``assembled`` into ``<output_dir>/<output_base_name>.dzi`` (+ ``_files``).

        The assembled file is removed whether tiling succeeds or fails.

        Raises:
            TilingError: engine failure of any kind
        """
        staging_dir = self.output_dir / f"{STAGING_PREFIX}{uuid.uuid4().hex[:12]}"
        staging_base = staging_dir / output_base_name

        with ScratchFile(assembled.path):
            try:
                staging_dir.mkdir(parents=True)
                descriptor = await self.engine.generate(assembled.path, staging_base)
                if not descriptor_path(staging_base).is_file():
                    raise TileEngineError("engine finished without writing a descriptor")
                hierarchy = await self._publish(staging_base, output_base_name, descriptor)
            except TileEngineError as e:
                logger.error(f"[TILING] {output_base_name}: {e}")
                raise TilingError(str(e)) from e
            except Exception as e:
                logger.error(f"[TILING] {output_base_name}: unexpected {type(e).__name__}: {e}", exc_info=True)
                raise TilingError(f"{type(e).__name__}: {e}") from e
            finally:
                shutil.rmtree(staging_dir, ignore_errors=True)

        logger.info(
            f"[TILING] {output_base_name}: {descriptor.width}x{descriptor.height}, "
            f"{descriptor.level_count} level(s) -> {hierarchy.descriptor_path}"
        )
        return hierarchy

    async def _publish(self, staging_base: Path, base_name: str, descriptor) -> TileHierarchy:
        final_base = self.output_dir / base_name
        final_dzi = descriptor_path(final_base)
        final_files = tiles_dir(final_base)

        async with self._publish_lock:
            # old hierarchy goes into the staging dir and is removed with it
            if final_files.exists():
                final_files.rename(staging_base.parent / ".replaced")
            tiles_dir(staging_base).rename(final_files)
            descriptor_path(staging_base).replace(final_dzi)

        return TileHierarchy(
            base_name=base_name,
            descriptor_path=final_dzi,
            tiles_dir=final_files,
            descriptor=descriptor,
        )

    def cleanup_staging(self) -> int:
        """Remove staging directories left by a crash mid-tiling."""
        removed = 0
        for path in self.output_dir.glob(f"{STAGING_PREFIX}*"):
            shutil.rmtree(path, ignore_errors=True)
            removed += 1
        if removed:
            logger.info(f"Removed {removed} stale staging dir(s) from {self.output_dir}")
        return removed
