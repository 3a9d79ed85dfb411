# tile_interface/base.py
from abc import ABC, abstractmethod
from pathlib import Path

from dzi_ingest.models.records import DziDescriptor


class TileEngineError(Exception):
    """Raised by an engine when the source cannot be turned into a pyramid."""


class TileEngineBase(ABC):
    """타일 엔진 추상 인터페이스

    An engine writes a Deep Zoom pyramid for ``source`` next to
    ``output_base``: ``<output_base>.dzi`` plus ``<output_base>_files/<level>/<col>_<row>.<format>``.
    Engines must accept arbitrarily large sources.
    """

    def __init__(
        self,
        tile_size: int = 256,
        overlap: int = 2,
        tile_format: str = "jpeg",
        quality: int = 80,
    ):
        self.tile_size = tile_size
        self.overlap = overlap
        self.tile_format = tile_format
        self.quality = quality

    @abstractmethod
    async def generate(self, source: Path, output_base: Path) -> DziDescriptor:
        """
        Build the pyramid.

        Args:
            source: Assembled image file
            output_base: Path without suffix; the engine adds .dzi and _files

        Returns:
            Descriptor of the written pyramid

        Raises:
            TileEngineError: If the source is unreadable or the engine fails
        """
        pass

    async def shutdown(self) -> None:
        pass
