# services/assembler.py
import logging
from pathlib import Path

import aiofiles

from dzi_ingest.errors import MissingChunk
from dzi_ingest.models.records import AssembledImage
from dzi_ingest.storage.chunk_store import ChunkStore
from dzi_ingest.utils.temp_file_manager import assembled_path, remove_quietly

logger = logging.getLogger(__name__)


class Assembler:
    """Concatenates a session's chunks 0..total_chunks-1 into one file.

    With delete_consumed=True each chunk is removed as soon as its bytes
    are written, so a second assembly of the same session sees the consumed
    chunks as missing. With delete_consumed=False chunks are only read and
    the caller owns their cleanup.
    """

    def __init__(self, chunk_store: ChunkStore, scratch_dir: Path, delete_consumed: bool = True):
        self.chunk_store = chunk_store
        self.scratch_dir = Path(scratch_dir)
        self.delete_consumed = delete_consumed

    async def assemble(self, session_id: str, total_chunks: int, extension: str) -> AssembledImage:
        """
        Raises:
            MissingChunk: first absent index; no partial output is left behind
        """
        out_path = assembled_path(self.scratch_dir, session_id, extension)
        written = 0

        try:
            async with aiofiles.open(out_path, "wb") as out:
                for index in range(total_chunks):
                    data = await self.chunk_store.read(session_id, index)
                    if data is None:
                        raise MissingChunk(index)

                    await out.write(data)
                    written += len(data)

                    if self.delete_consumed:
                        await self.chunk_store.delete(session_id, index)

                await out.flush()
        except BaseException:
            remove_quietly(out_path)
            raise

        logger.info(f"[ASSEMBLE] session={session_id}: {total_chunks} chunk(s), {written} bytes -> {out_path.name}")
        return AssembledImage(path=out_path, declared_extension=extension, size_bytes=written)
