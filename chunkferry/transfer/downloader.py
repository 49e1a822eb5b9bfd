"""
Chunk Downloader

Design Decision: Download Strategy
===================================

Options Considered:
1. Sequential download, one chunk at a time
   - Simple, output of the client stays readable
   - Slow for many chunks
2. Parallel downloads
   - Faster
   - Interleaved client output, harder failure reporting

Decision: Sequential
- Each chunk is awaited before the next is requested
- A failed chunk is logged and skipped; the merge notices the gap

Remote naming:
The remote identifier of chunk i is assumed to be its local filename,
chunk_<i>.dat. This is not verified against the storage network.
"""

import logging
from pathlib import Path
from typing import Optional

from .transport import StorageTransport, TransferReport
from ..exceptions import PipelineError, TransferError
from ..file.chunker import chunk_name, chunk_path
from ..file.manifest import ChunkManifest, expected_indices, manifest_path, remove_manifest

logger = logging.getLogger(__name__)


class ChunkDownloader:
    """
    Fetches every expected chunk into a target directory.

    With a manifest only its listed indices are requested; without one
    every index 0..max_chunks-1 is. A request is made whether or not a
    local copy already exists.
    """

    def __init__(self, transport: StorageTransport, fragment_size_mb: int = 400,
                 max_chunks: int = 10):
        self.transport = transport
        self.fragment_size_mb = fragment_size_mb
        self.max_chunks = max_chunks

    @staticmethod
    def remote_id(index: int) -> str:
        """Identifier of chunk `index` on the storage network."""
        return chunk_name(index)

    async def download_all(self, output_dir: Path,
                           manifest: Optional[ChunkManifest] = None) -> TransferReport:
        """
        Download chunks into `output_dir`.

        Args:
            output_dir: Target directory, created if absent
            manifest: Chunks to fetch; scans 0..max_chunks-1 when None.
                Saved into `output_dir` for the merge stage. When None, a
                manifest left in `output_dir` by an earlier run is removed.

        Raises:
            PipelineError: if `output_dir` cannot be created
        """
        output_dir = Path(output_dir)

        logger.info(f"Downloading chunks to: {output_dir}")

        try:
            output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PipelineError(f"Cannot create directory {output_dir}: {e}") from e

        if manifest is not None:
            try:
                manifest.save(manifest_path(output_dir))
            except OSError as e:
                logger.warning(f"Could not write manifest to {output_dir}: {e}")
        else:
            remove_manifest(output_dir)

        report = TransferReport(operation='download', transport=self.transport.name)

        if not self.transport.available:
            report.transport_available = False
            for line in self.transport.describe('download').splitlines():
                logger.info(line)
            return report

        for index in expected_indices(manifest, self.max_chunks):
            path = chunk_path(output_dir, index)

            logger.info(f"Downloading chunk {index}: {path}")
            report.attempted.append(index)

            try:
                ok = await self.transport.download(self.remote_id(index), path,
                                                   self.fragment_size_mb)
            except TransferError as e:
                logger.error(f"Failed to download chunk {index}: {e}")
                ok = False
            else:
                if not ok:
                    logger.error(f"Failed to download chunk {index}")

            if not ok:
                report.failed.append(index)
                continue

            report.succeeded.append(index)
            if path.exists():
                report.bytes_transferred += path.stat().st_size
            logger.info(f"Downloaded chunk {index}")

        logger.info(
            f"Download finished: {len(report.succeeded)} succeeded, "
            f"{len(report.failed)} failed"
        )
        return report
