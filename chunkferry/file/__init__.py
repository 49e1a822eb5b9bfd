"""
File Module - Splitting, Manifests, and Merging

This module handles the on-disk side of the chunk pipeline.
"""

from .chunker import (
    FileChunker, CHUNK_SIZE, MAX_CHUNKS, chunk_name, chunk_path, chunk_indices_on_disk,
)
from .manifest import (
    ChunkManifest, ChunkInfo, MANIFEST_NAME, load_manifest, expected_indices, remove_manifest,
)
from .merger import ChunkMerger, MergeReport

__all__ = [
    'FileChunker',
    'CHUNK_SIZE',
    'MAX_CHUNKS',
    'chunk_name',
    'chunk_path',
    'chunk_indices_on_disk',
    'ChunkManifest',
    'ChunkInfo',
    'MANIFEST_NAME',
    'load_manifest',
    'expected_indices',
    'remove_manifest',
    'ChunkMerger',
    'MergeReport',
]
