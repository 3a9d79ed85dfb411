# models/records.py
"""Domain records passed between the ingestion stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


def now_iso() -> str:
    """UTC timestamp in ISO-8601 with 'Z' suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class IngestionStage(str, Enum):
    INIT = "init"
    RECEIVING = "receiving"
    COMPLETING = "completing"
    VALIDATING = "validating"
    ASSEMBLING = "assembling"
    TILING = "tiling"
    REGISTERING = "registering"
    DONE = "done"
    FAILED = "failed"


@dataclass
class UploadSession:
    id: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    last_activity_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    stage: IngestionStage = IngestionStage.INIT
    failed_stage: Optional[IngestionStage] = None
    error: Optional[str] = None

    def touch(self) -> None:
        self.last_activity_at = datetime.now(timezone.utc)


@dataclass(frozen=True)
class AssembledImage:
    path: Path
    declared_extension: str
    size_bytes: int


@dataclass(frozen=True)
class DziDescriptor:
    """Parsed view of a .dzi descriptor document."""
    width: int
    height: int
    tile_size: int
    overlap: int
    format: str

    @property
    def max_level(self) -> int:
        # ceil(log2(max_dim)) without float rounding
        return (max(self.width, self.height, 1) - 1).bit_length()

    @property
    def level_count(self) -> int:
        return self.max_level + 1


@dataclass(frozen=True)
class TileHierarchy:
    base_name: str
    descriptor_path: Path
    tiles_dir: Path
    descriptor: DziDescriptor

    @property
    def levels(self) -> list:
        """Level directories present on disk, in ascending zoom order."""
        return sorted(int(p.name) for p in self.tiles_dir.iterdir() if p.is_dir() and p.name.isdigit())


class ImageRecord(BaseModel):
    """Registry entry for one successfully tiled upload."""
    model_config = ConfigDict(populate_by_name=True)

    dzi_base_name: str = Field(..., alias="dziBaseName")
    dzi_path: str = Field(..., alias="dziPath")
    original_filename: str = Field(..., alias="originalFilename")
    upload_id: str = Field(..., alias="uploadId")
    uploaded_at: str = Field(default_factory=now_iso, alias="uploadedAt")

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)
