"""
Chunk Pipeline - Main Controller

Orchestrates the four stages of a chunked transfer:
- Split a file into chunk files
- Upload the chunk files through the storage transport
- Download the chunk files into another directory
- Merge downloaded chunks back into one file

Every stage can run on its own; run_all() chains them. Stages run
strictly one after another, and within a stage one chunk at a time.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import PipelineConfig
from .file import (
    ChunkManifest, ChunkMerger, FileChunker, MergeReport,
    expected_indices, load_manifest,
)
from .file.chunker import ChunkCallback, chunk_indices_on_disk
from .file.manifest import manifest_path, remove_manifest
from .transfer import (
    ChunkDownloader, ChunkUploader, StorageTransport, TransferReport,
    resolve_transport,
)

logger = logging.getLogger(__name__)


@dataclass
class PipelineResult:
    """Reports of a full run."""
    manifest: ChunkManifest
    upload: TransferReport
    download: TransferReport
    merge: MergeReport


class ChunkPipeline:
    """
    Split/upload/download/merge pipeline.

    Combines all stages behind one interface:
    - split(input_path): write chunk files (and a manifest)
    - upload(chunks_dir): upload chunk files
    - download(output_dir): fetch chunk files
    - merge(chunks_dir, output_path): reassemble a file
    - run_all(input_path, output_path): all of the above in order
    """

    def __init__(self, config: PipelineConfig = None,
                 transport: Optional[StorageTransport] = None):
        """
        Args:
            config: Pipeline configuration (defaults if not provided)
            transport: Storage transport; resolved from config on first use
        """
        self.config = config or PipelineConfig()
        self._transport = transport

        self.chunker = FileChunker(
            chunk_size=self.config.chunk_size,
            max_chunks=self.config.max_chunks,
        )
        self.merger = ChunkMerger()

    @property
    def transport(self) -> StorageTransport:
        if self._transport is None:
            self._transport = resolve_transport(
                self.config.client_command,
                fragment_size_mb=self.config.fragment_size_mb,
            )
        return self._transport

    def _read_manifest(self, directory: Path) -> Optional[ChunkManifest]:
        if not self.config.use_manifest:
            return None
        manifest = load_manifest(directory)
        if manifest is not None:
            logger.debug(f"Using manifest for {directory}: {manifest.chunk_count} chunks")
        return manifest

    # === Stages ===

    async def split(self, input_path: Path, chunks_dir: Path = None,
                    progress_callback: Optional[ChunkCallback] = None) -> ChunkManifest:
        """
        Split `input_path` into `chunks_dir` (default: config.chunks_dir).

        Writes manifest.json next to the chunks, or removes a leftover one
        when manifests are disabled.
        """
        chunks_dir = Path(chunks_dir or self.config.chunks_dir)

        manifest = await self.chunker.split_file(input_path, chunks_dir, progress_callback)

        if self.config.use_manifest:
            path = manifest_path(chunks_dir)
            try:
                manifest.save(path)
            except OSError as e:
                logger.warning(f"Could not write manifest {path}: {e}")
            else:
                logger.debug(f"Wrote manifest: {path}")
        else:
            remove_manifest(chunks_dir)

        return manifest

    async def upload(self, chunks_dir: Path = None) -> TransferReport:
        """Upload the chunk files of `chunks_dir` (default: config.chunks_dir)."""
        chunks_dir = Path(chunks_dir or self.config.chunks_dir)

        uploader = ChunkUploader(
            transport=self.transport,
            fragment_size_mb=self.config.fragment_size_mb,
            max_chunks=self.config.max_chunks,
        )
        return await uploader.upload_directory(chunks_dir, self._read_manifest(chunks_dir))

    async def download(self, output_dir: Path = None,
                       manifest: Optional[ChunkManifest] = None) -> TransferReport:
        """
        Download chunk files into `output_dir` (default: config.download_dir).

        With a manifest only its listed indices are requested, otherwise
        every index 0..max_chunks-1.
        """
        output_dir = Path(output_dir or self.config.download_dir)

        if not self.config.use_manifest:
            manifest = None

        downloader = ChunkDownloader(
            transport=self.transport,
            fragment_size_mb=self.config.fragment_size_mb,
            max_chunks=self.config.max_chunks,
        )
        return await downloader.download_all(output_dir, manifest)

    async def merge(self, chunks_dir: Path, output_path: Path,
                    progress_callback: Optional[ChunkCallback] = None) -> MergeReport:
        """Merge the chunks of `chunks_dir` into `output_path`."""
        chunks_dir = Path(chunks_dir)
        manifest = self._read_manifest(chunks_dir)
        indices = expected_indices(manifest, self.config.max_chunks)

        if manifest is not None:
            unlisted = [i for i in chunk_indices_on_disk(chunks_dir) if i not in manifest.indices]
            if unlisted:
                logger.warning(
                    f"Chunk files not listed in the manifest of {chunks_dir} are left out: "
                    f"{unlisted}"
                )

        return await self.merger.merge(chunks_dir, output_path, indices, progress_callback)

    async def run_all(self, input_path: Path, output_path: Path) -> PipelineResult:
        """
        Run split -> upload -> download -> merge.

        The manifest from the split drives the later stages, so the download
        requests only the indices it lists rather than all of 0..max_chunks-1.
        Without manifests every index is requested. Intermediate chunk
        directories are left in place.
        """
        chunks_dir = Path(self.config.chunks_dir)
        download_dir = Path(self.config.download_dir)

        logger.info("========== Starting full pipeline ==========")

        logger.info("[Step 1/4] Splitting file")
        manifest = await self.split(input_path, chunks_dir)

        logger.info("[Step 2/4] Uploading chunks")
        upload_report = await self.upload(chunks_dir)

        logger.info("[Step 3/4] Downloading chunks")
        download_report = await self.download(download_dir, manifest)

        logger.info("[Step 4/4] Merging chunks")
        merge_report = await self.merge(download_dir, output_path)

        logger.info("========== Full pipeline complete ==========")
        return PipelineResult(
            manifest=manifest,
            upload=upload_report,
            download=download_report,
            merge=merge_report,
        )
