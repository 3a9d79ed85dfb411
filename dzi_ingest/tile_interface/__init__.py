from .base import TileEngineBase, TileEngineError
from .factory import TileEngineFactory

__all__ = ['TileEngineBase', 'TileEngineError', 'TileEngineFactory']
