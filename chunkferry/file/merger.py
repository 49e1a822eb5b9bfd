"""
Chunk Merger

Reassembles chunk files into one output file, in ascending index order.
A missing or unreadable chunk is logged and left out of the output; the
merge itself only fails when the output file cannot be created.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import aiofiles

from ..exceptions import PipelineError
from .chunker import COPY_BUFFER_SIZE, MB, ChunkCallback, chunk_path

logger = logging.getLogger(__name__)


@dataclass
class MergeReport:
    """Outcome of a merge."""
    output_path: Path
    merged: Dict[int, int] = field(default_factory=dict)  # index -> bytes
    missing: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)
    total_size: int = 0

    @property
    def merged_count(self) -> int:
        return len(self.merged)


class ChunkMerger:
    """Concatenates chunk files into a single file."""

    def __init__(self, buffer_size: int = COPY_BUFFER_SIZE):
        self.buffer_size = buffer_size

    async def merge(self, chunks_dir: Path, output_path: Path, indices: Iterable[int],
                    progress_callback: Optional[ChunkCallback] = None) -> MergeReport:
        """
        Merge the chunks at `indices` from `chunks_dir` into `output_path`.

        Raises:
            PipelineError: if the output file cannot be created
        """
        chunks_dir = Path(chunks_dir)
        output_path = Path(output_path)

        logger.info(f"Merging chunks: {chunks_dir} -> {output_path}")

        try:
            output = await aiofiles.open(output_path, 'wb')
        except OSError as e:
            raise PipelineError(f"Cannot create output file {output_path}: {e}") from e

        report = MergeReport(output_path=output_path)

        try:
            for index in sorted(indices):
                copied = await self._append_chunk(output, chunks_dir, index, report)
                if copied is not None and progress_callback:
                    progress_callback(index, copied)
        finally:
            await output.close()

        report.total_size = output_path.stat().st_size
        logger.info(
            f"Merge complete: {output_path} ({report.total_size / (1024 * MB):.2f} GB, "
            f"{report.merged_count} chunks)"
        )
        return report

    async def _append_chunk(self, output, chunks_dir: Path, index: int,
                            report: MergeReport) -> Optional[int]:
        """Append one chunk to `output`. Returns bytes copied, or None if skipped."""
        path = chunk_path(chunks_dir, index)

        if not path.exists():
            logger.warning(f"Chunk file missing: {path}, skipping")
            report.missing.append(index)
            return None

        try:
            chunk = await aiofiles.open(path, 'rb')
        except OSError as e:
            logger.error(f"Cannot open chunk file {path}: {e}")
            report.failed.append(index)
            return None

        copied = 0
        try:
            while True:
                data = await chunk.read(self.buffer_size)
                if not data:
                    break
                await output.write(data)
                copied += len(data)
        except OSError as e:
            logger.error(f"Failed to merge chunk {index}: {e}")
            report.failed.append(index)
            return None
        finally:
            await chunk.close()

        report.merged[index] = copied
        logger.info(f"Merged chunk {index}: {copied / MB:.2f} MB")
        return copied
