# tile_engines/__init__.py
from dzi_ingest.tile_interface.factory import TileEngineFactory

from .pillow import PillowTileEngine
from .vips import VipsTileEngine

# 팩토리에 엔진 등록
TileEngineFactory.register('pillow', PillowTileEngine)
TileEngineFactory.register('vips', VipsTileEngine)

__all__ = ['PillowTileEngine', 'VipsTileEngine']
