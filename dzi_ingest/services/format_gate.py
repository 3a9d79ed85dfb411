# services/format_gate.py
from pathlib import PurePosixPath, PureWindowsPath
from typing import Iterable, Tuple

from dzi_ingest.config.settings import Settings
from dzi_ingest.errors import UnsupportedFormat


def split_filename(filename: str) -> Tuple[str, str]:
    """
    Split a client-supplied file name into (base name, lower-cased extension).

    Directory parts are dropped for either separator style, so the base name
    is always safe to use as an output name.
    """
    name = PureWindowsPath(PurePosixPath(filename).name).name
    pure = PurePosixPath(name)
    ext = pure.suffix
    base = name[: -len(ext)] if ext else name
    return base, ext.lower()


class FormatGate:
    """확장자 화이트리스트 검사 (내용 검사 아님)"""

    def __init__(self, allowed: Iterable[str] = Settings.ALLOWED_EXTENSIONS):
        self.allowed = frozenset(ext.lower() for ext in allowed)

    def validate(self, filename: str) -> str:
        """
        Returns:
            The lower-cased extension, e.g. ".tif"

        Raises:
            UnsupportedFormat: extension missing or not allow-listed
        """
        base, ext = split_filename(filename or "")
        # dot-prefixed names would land among hidden staging entries of the tiles dir
        if base.startswith(".") or not base.strip(". ") or ext not in self.allowed:
            raise UnsupportedFormat(filename)
        return ext
