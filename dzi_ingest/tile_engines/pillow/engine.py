# tile_engines/pillow/engine.py
"""Pillow Deep Zoom engine.

Builds the pyramid in-process. Pillow work is CPU bound and blocking, so
generate() hands it to an executor and the event loop keeps serving
requests while a large image is tiled.
"""

import asyncio
import functools
import logging
import math
from concurrent.futures import Executor
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from dzi_ingest.models.records import DziDescriptor
from dzi_ingest.tile_interface.base import TileEngineBase, TileEngineError
from ..descriptor import descriptor_path, tiles_dir, write_descriptor

logger = logging.getLogger(__name__)

# No pixel-count ceiling: gigapixel slides are the normal case here
Image.MAX_IMAGE_PIXELS = None

_PIL_FORMATS = {"jpeg": "JPEG", "png": "PNG"}


class PillowTileEngine(TileEngineBase):
    """In-process tiler built on Pillow."""

    def __init__(self, executor: Optional[Executor] = None, **options):
        super().__init__(**options)
        if self.tile_format not in _PIL_FORMATS:
            raise ValueError(f"Unsupported tile format for pillow engine: {self.tile_format}")
        self.executor = executor

    async def generate(self, source: Path, output_base: Path) -> DziDescriptor:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self.executor, functools.partial(self.generate_sync, Path(source), Path(output_base))
        )

    def generate_sync(self, source: Path, output_base: Path) -> DziDescriptor:
        try:
            img = Image.open(source)
            img.load()
        except (UnidentifiedImageError, OSError, ValueError, SyntaxError) as e:
            raise TileEngineError(f"Cannot read image {source.name}: {e}") from e

        try:
            return self._build_pyramid(self._normalize_mode(img), source.name, output_base)
        finally:
            img.close()

    def _build_pyramid(self, image: Image.Image, source_name: str, output_base: Path) -> DziDescriptor:
        width, height = image.size
        descriptor = DziDescriptor(
            width=width,
            height=height,
            tile_size=self.tile_size,
            overlap=self.overlap,
            format=self.tile_format,
        )
        logger.info(
            f"[PILLOW] {source_name}: {width}x{height}, levels={descriptor.level_count}, "
            f"tile={self.tile_size}, overlap={self.overlap}"
        )

        files_dir = tiles_dir(output_base)
        level_image = image
        try:
            for level in range(descriptor.max_level, -1, -1):
                self._write_level(level_image, files_dir / str(level))
                if level > 0:
                    w, h = level_image.size
                    # ceil-halving keeps level L at ceil(W / 2**(max_level - L))
                    level_image = level_image.resize(
                        (max(1, (w + 1) // 2), max(1, (h + 1) // 2)), Image.Resampling.LANCZOS
                    )
        except OSError as e:
            raise TileEngineError(f"Failed to write tiles: {e}") from e

        write_descriptor(descriptor_path(output_base), descriptor)
        return descriptor

    def _normalize_mode(self, img: Image.Image) -> Image.Image:
        """Bring exotic source modes into something JPEG/PNG can hold."""
        if img.mode.startswith("I;16"):
            img = img.convert("I")
        if img.mode in ("I", "F"):
            img = img.point(lambda v: v * (1 / 256)).convert("L")

        if self.tile_format == "jpeg":
            if img.mode not in ("RGB", "L"):
                img = img.convert("RGB")
        elif img.mode not in ("RGB", "RGBA", "L", "LA"):
            img = img.convert("RGBA")
        return img

    def _write_level(self, image: Image.Image, level_dir: Path) -> None:
        level_dir.mkdir(parents=True, exist_ok=True)
        width, height = image.size
        cols = math.ceil(width / self.tile_size)
        rows = math.ceil(height / self.tile_size)

        save_options = {"quality": self.quality} if self.tile_format == "jpeg" else {}
        pil_format = _PIL_FORMATS[self.tile_format]

        for col in range(cols):
            x0 = max(0, col * self.tile_size - self.overlap)
            x1 = min(width, (col + 1) * self.tile_size + self.overlap)
            for row in range(rows):
                y0 = max(0, row * self.tile_size - self.overlap)
                y1 = min(height, (row + 1) * self.tile_size + self.overlap)
                tile = image.crop((x0, y0, x1, y1))
                tile.save(level_dir / f"{col}_{row}.{self.tile_format}", pil_format, **save_options)
