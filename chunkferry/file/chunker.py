"""
File Chunker

Design Decision: Chunk Layout
=============================

Options Considered:
| Naming            | Pros                          | Cons                            |
|-------------------|-------------------------------|---------------------------------|
| content hash      | Dedup, self-verifying         | Needs hashing, index lost       |
| chunk_<index>.dat | Deterministic, order explicit | No dedup                        |

Decision: chunk_<index>.dat
- The name is a function of the index only, so any stage can derive it
- Re-running a split overwrites the same names (idempotent)
- Order is recoverable from the name without reading the chunk

Chunking Strategy: Fixed-Size, bounded count
- Up to max_chunks chunks of chunk_size bytes
- Last chunk may be smaller
- Data beyond chunk_size * max_chunks is not split
"""

import logging
import time
from pathlib import Path
from typing import Callable, List, Optional

import aiofiles

from ..exceptions import PipelineError
from .manifest import ChunkInfo, ChunkManifest

logger = logging.getLogger(__name__)

MB = 1024 * 1024

# Defaults: 10 chunks of 400MB
CHUNK_SIZE = 400 * MB
MAX_CHUNKS = 10

# Chunks are streamed, never held in memory whole
COPY_BUFFER_SIZE = 4 * MB

# Called with (chunk_index, bytes_written)
ChunkCallback = Callable[[int, int], None]


def chunk_name(index: int) -> str:
    """Filename (and remote identifier) of the chunk at `index`."""
    return f"chunk_{index}.dat"


def chunk_path(directory: Path, index: int) -> Path:
    """Path of the chunk at `index` inside `directory`."""
    return Path(directory) / chunk_name(index)


def chunk_indices_on_disk(directory: Path) -> List[int]:
    """Indices of the chunk_<i>.dat files present in `directory`, ascending."""
    indices = []
    for path in Path(directory).glob("chunk_*.dat"):
        suffix = path.stem[len("chunk_"):]
        if suffix.isdigit() and path.name == chunk_name(int(suffix)):
            indices.append(int(suffix))
    return sorted(indices)


class FileChunker:
    """
    Splits a file into sequential fixed-size chunk files.

    Features:
    - Bounded number of chunks
    - Streaming copy with a fixed buffer
    - No empty chunk file is ever created
    - Returns a manifest of what was produced
    """

    def __init__(self, chunk_size: int = CHUNK_SIZE, max_chunks: int = MAX_CHUNKS,
                 buffer_size: int = COPY_BUFFER_SIZE):
        self.chunk_size = chunk_size
        self.max_chunks = max_chunks
        self.buffer_size = buffer_size

    def get_chunk_count(self, file_size: int) -> int:
        """Number of chunks a file of `file_size` bytes splits into."""
        count = (file_size + self.chunk_size - 1) // self.chunk_size
        return min(count, self.max_chunks)

    async def split_file(self, input_path: Path, output_dir: Path,
                         progress_callback: Optional[ChunkCallback] = None) -> ChunkManifest:
        """
        Split `input_path` into chunk files under `output_dir`.

        Raises:
            PipelineError: the input cannot be read, the output directory
                cannot be created, or a chunk cannot be written.

        Returns:
            ChunkManifest describing the chunks written
        """
        input_path = Path(input_path)
        output_dir = Path(output_dir)

        logger.info(f"Splitting file: {input_path}")

        try:
            file_size = input_path.stat().st_size
        except OSError as e:
            raise PipelineError(f"Cannot open input file {input_path}: {e}") from e

        logger.info(f"File size: {file_size / (1024 * MB):.2f} GB ({file_size:,} bytes)")

        try:
            source = await aiofiles.open(input_path, 'rb')
        except OSError as e:
            raise PipelineError(f"Cannot open input file {input_path}: {e}") from e

        chunks: List[ChunkInfo] = []
        offset = 0

        try:
            try:
                output_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise PipelineError(f"Cannot create directory {output_dir}: {e}") from e

            for index in range(self.max_chunks):
                path = chunk_path(output_dir, index)

                try:
                    data = await source.read(min(self.buffer_size, self.chunk_size))
                    if not data:
                        # Input exhausted
                        break
                    written = await self._write_chunk(source, path, data)
                except OSError as e:
                    raise PipelineError(f"Failed to write chunk file {path}: {e}") from e

                chunks.append(ChunkInfo(
                    index=index,
                    name=path.name,
                    size=written,
                    offset=offset,
                ))
                offset += written

                logger.info(f"Created chunk {index}: {path} ({written / MB:.2f} MB)")
                if progress_callback:
                    progress_callback(index, written)

                if written < self.chunk_size:
                    break
        finally:
            await source.close()

        if offset < file_size:
            logger.warning(
                f"Input exceeds {self.max_chunks} chunks of {self.chunk_size:,} bytes; "
                f"trailing {file_size - offset:,} bytes were not split"
            )

        logger.info(f"Split complete: {len(chunks)} chunk files created")

        return ChunkManifest(
            source_name=input_path.name,
            source_size=file_size,
            chunk_size=self.chunk_size,
            max_chunks=self.max_chunks,
            chunks=chunks,
            created_at=time.time(),
        )

    async def _write_chunk(self, source, path: Path, first: bytes) -> int:
        """Write `first` plus up to chunk_size bytes total from `source`."""
        written = 0
        data = first

        async with aiofiles.open(path, 'wb') as out:
            while data:
                await out.write(data)
                written += len(data)

                remaining = self.chunk_size - written
                if remaining <= 0:
                    break
                data = await source.read(min(self.buffer_size, remaining))

        return written
