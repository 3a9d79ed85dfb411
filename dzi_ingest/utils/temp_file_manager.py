"""Scratch file helpers for assembled uploads.

Assembled images only live between assembly and tiling. ScratchFile owns
one such file and removes it on exit whether tiling succeeded or not.
cleanup_orphaned_scratch() reclaims whatever a crash left behind.
"""

import logging
import os
import time
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

ASSEMBLED_MARKER = "_assembled"


def assembled_path(scratch_dir: Path, session_id: str, extension: str) -> Path:
    """Scratch location of a session's assembled image, e.g. ``<id>_assembled.tif``."""
    return Path(scratch_dir) / f"{session_id}{ASSEMBLED_MARKER}{extension}"


def remove_quietly(path: Union[str, Path]) -> bool:
    """Best-effort unlink. Returns True if a file was removed."""
    try:
        os.unlink(path)
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"Failed to remove {path}: {e}")
        return False


class ScratchFile:
    """Context manager deleting a scratch file on exit.

    Example:
        with ScratchFile(assembled.path):
            await generator.tile(assembled, base_name)
        # assembled file removed here, even if tiling raised
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def __enter__(self) -> "ScratchFile":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if remove_quietly(self.path):
            logger.info(f"Cleaned up scratch file: {self.path.name}")
        return False  # Don't suppress exceptions


def cleanup_orphaned_scratch(scratch_dir: Union[str, Path], max_age_hours: float = 1.0) -> int:
    """Delete assembled files and partial chunk writes older than max_age_hours.

    Chunk files themselves belong to sessions and are reclaimed by the
    session sweep; this only handles files no live session can own.

    Returns:
        Number of files deleted
    """
    scratch_dir = Path(scratch_dir)
    if not scratch_dir.is_dir():
        return 0

    cutoff_time = time.time() - (max_age_hours * 3600)
    deleted_count = 0

    for path in scratch_dir.iterdir():
        is_assembled = ASSEMBLED_MARKER in path.name
        is_partial = path.name.startswith(".") and path.name.endswith(".part")
        if not (is_assembled or is_partial) or not path.is_file():
            continue
        try:
            if path.stat().st_mtime < cutoff_time and remove_quietly(path):
                logger.info(f"Deleted orphaned scratch file: {path.name}")
                deleted_count += 1
        except OSError as e:
            logger.warning(f"Failed to inspect {path}: {e}")

    logger.info(f"Scratch cleanup complete. Deleted {deleted_count} orphaned file(s).")
    return deleted_count
