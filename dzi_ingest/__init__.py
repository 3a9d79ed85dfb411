"""Chunked image upload and Deep Zoom tile pyramid generation."""

__version__ = "1.0.0"
