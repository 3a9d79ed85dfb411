# tile_engines/vips/engine.py
"""libvips Deep Zoom engine.

Runs ``vips dzsave`` as a subprocess, the same tiler the Node `sharp`
package wraps. Large sources are streamed by libvips, so memory stays flat
regardless of pixel count.
"""

import asyncio
import logging
import shutil
from pathlib import Path

from dzi_ingest.models.records import DziDescriptor
from dzi_ingest.tile_interface.base import TileEngineBase, TileEngineError
from ..descriptor import descriptor_path, read_descriptor

logger = logging.getLogger(__name__)

VIPS_TIMEOUT_SECONDS = 3600


class VipsTileEngine(TileEngineBase):
    """Tiler delegating to the vips CLI."""

    def __init__(self, vips_path: str = "vips", timeout: float = VIPS_TIMEOUT_SECONDS, **options):
        super().__init__(**options)
        self.vips_path = vips_path
        self.timeout = timeout

        if shutil.which(self.vips_path) is None:
            logger.warning(f"[VIPS] '{self.vips_path}' not found in PATH; tiling will fail")

    def build_command(self, source: Path, output_base: Path) -> list:
        suffix = f".{self.tile_format}"
        if self.tile_format == "jpeg":
            suffix += f"[Q={self.quality}]"
        return [
            self.vips_path, "dzsave", str(source), str(output_base),
            "--layout", "dz",
            "--tile-size", str(self.tile_size),
            "--overlap", str(self.overlap),
            "--depth", "onepixel",
            "--suffix", suffix,
        ]

    async def generate(self, source: Path, output_base: Path) -> DziDescriptor:
        cmd = self.build_command(Path(source), Path(output_base))
        logger.info(f"[VIPS] {' '.join(cmd)}")

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            raise TileEngineError(f"Cannot start vips: {e}") from e

        try:
            # communicate() drains both pipes; wait() alone can deadlock on a full stderr
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise TileEngineError(f"vips dzsave timed out after {self.timeout}s")

        if process.returncode != 0:
            err = stderr.decode("utf-8", errors="ignore").strip()
            raise TileEngineError(f"vips dzsave failed (code {process.returncode}): {err}")

        try:
            return read_descriptor(descriptor_path(Path(output_base)))
        except (OSError, ValueError) as e:
            raise TileEngineError(f"vips produced no usable descriptor: {e}") from e
