"""Generate a Deep Zoom pyramid from a local image without going through the upload API."""
import asyncio
import sys
from pathlib import Path

from dzi_ingest.config.settings import settings
from dzi_ingest.main import build_engine
from dzi_ingest.tile_engines.descriptor import descriptor_path, tiles_dir
from dzi_ingest.tile_interface.base import TileEngineError


async def make_dzi(image_path: str, output_base: str) -> int:
    source = Path(image_path)
    if not source.is_file():
        print(f"Error: Image not found: {image_path}")
        return 1

    out = Path(output_base)
    out.parent.mkdir(parents=True, exist_ok=True)

    engine = build_engine(settings)
    print(f"[make_dzi] {source.name} → {out} (engine={settings.TILE_ENGINE})")

    try:
        descriptor = await engine.generate(source, out)
    except TileEngineError as e:
        print(f"[make_dzi] Tile generation failed: {e}")
        return 1

    print(f"[make_dzi] {descriptor.width}x{descriptor.height}, {descriptor.level_count} levels")
    print(f"  {descriptor_path(out)}")
    print(f"  {tiles_dir(out)}/")
    return 0


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print("Usage: python -m dzi_ingest.make_dzi <image_path> <output_base>")
        print("\nExample:")
        print("  python -m dzi_ingest.make_dzi assets/slide.tif data/tiles/slide/image")
        sys.exit(1)

    sys.exit(asyncio.run(make_dzi(sys.argv[1], sys.argv[2])))
