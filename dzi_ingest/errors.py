"""Ingestion failure taxonomy.

Every failure carries the pipeline stage it happened in and the HTTP status
the upload routes answer with. The message is the single human-readable
string returned to the client.
"""

from typing import Optional


class IngestionError(Exception):
    """Base class for failures surfaced through the upload contract."""

    stage: str = "completing"
    status_code: int = 500

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if stage is not None:
            self.stage = stage


class SessionNotFound(IngestionError):
    """uploadId was never issued, or the session was already retired."""

    stage = "receiving"
    status_code = 404

    def __init__(self, session_id: str):
        super().__init__(f"Upload session not found: {session_id}")
        self.session_id = session_id


class InvalidChunk(IngestionError):
    """Chunk index or total chunk count outside the accepted range."""

    stage = "receiving"
    status_code = 400


class ChunkTooLarge(IngestionError):
    stage = "receiving"
    status_code = 413


class UnsupportedFormat(IngestionError):
    stage = "validating"
    status_code = 400

    def __init__(self, filename: str):
        super().__init__("Unsupported file type.")
        self.filename = filename


class MissingChunk(IngestionError):
    stage = "assembling"
    status_code = 500

    def __init__(self, index: int):
        super().__init__(f"Failed to assemble chunks: missing chunk {index}")
        self.index = index


class TilingError(IngestionError):
    stage = "tiling"
    status_code = 500

    def __init__(self, cause: str):
        super().__init__(f"DZI generation failed: {cause}")
        self.cause = cause


class PersistenceError(IngestionError):
    stage = "registering"
    status_code = 500

    def __init__(self, cause: str):
        super().__init__(f"Failed to register image: {cause}")
        self.cause = cause
