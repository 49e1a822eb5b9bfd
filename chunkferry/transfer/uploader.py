"""
Chunk Uploader

Uploads the chunk files of a directory, one at a time.
"""

import logging
from pathlib import Path
from typing import Optional

from .transport import StorageTransport, TransferReport
from ..exceptions import TransferError
from ..file.chunker import chunk_path
from ..file.manifest import ChunkManifest, expected_indices

logger = logging.getLogger(__name__)


class ChunkUploader:
    """
    Uploads every expected chunk found in a directory.

    Missing chunk files are skipped with a notice. A failed upload is
    logged and the batch moves on to the next index.
    """

    def __init__(self, transport: StorageTransport, fragment_size_mb: int = 400,
                 max_chunks: int = 10):
        self.transport = transport
        self.fragment_size_mb = fragment_size_mb
        self.max_chunks = max_chunks

    async def upload_directory(self, chunks_dir: Path,
                               manifest: Optional[ChunkManifest] = None) -> TransferReport:
        """
        Upload the chunks of `chunks_dir`.

        Args:
            chunks_dir: Directory holding chunk_<i>.dat files
            manifest: Chunks to upload; scans 0..max_chunks-1 when None
        """
        chunks_dir = Path(chunks_dir)
        report = TransferReport(operation='upload', transport=self.transport.name)

        logger.info(f"Uploading chunks from: {chunks_dir}")

        if not self.transport.available:
            report.transport_available = False
            for line in self.transport.describe('upload').splitlines():
                logger.info(line)
            return report

        for index in expected_indices(manifest, self.max_chunks):
            path = chunk_path(chunks_dir, index)

            if not path.exists():
                logger.info(f"Skipping missing chunk file: {path}")
                report.skipped.append(index)
                continue

            logger.info(f"Uploading chunk {index}: {path}")
            report.attempted.append(index)

            try:
                ok = await self.transport.upload(path, self.fragment_size_mb)
            except TransferError as e:
                logger.error(f"Failed to upload chunk {index}: {e}")
                ok = False
            else:
                if not ok:
                    logger.error(f"Failed to upload chunk {index}")

            if not ok:
                report.failed.append(index)
                continue

            report.succeeded.append(index)
            report.bytes_transferred += path.stat().st_size
            logger.info(f"Uploaded chunk {index}")

        logger.info(
            f"Upload finished: {len(report.succeeded)} succeeded, "
            f"{len(report.failed)} failed, {len(report.skipped)} skipped"
        )
        return report
