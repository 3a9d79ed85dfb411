"""Pillow tile engine module."""

from .engine import PillowTileEngine

__all__ = ['PillowTileEngine']
