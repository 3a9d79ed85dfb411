"""libvips tile engine module."""

from .engine import VipsTileEngine

__all__ = ['VipsTileEngine']
