"""
Chunk Manifest

Design Decision: Manifest vs. Fixed-Count Scan
==============================================

Without a manifest, every stage after split has to guess which chunks
exist by scanning indices 0..max_chunks-1. That silently assumes every run
used the same max_chunks.

Decision: JSON manifest written next to the chunks at split time
- Lists exactly the chunks produced (index, name, size, offset)
- Later stages read it instead of guessing
- Falls back to the fixed-count scan when absent or unreadable
- Carries no hashes; chunks are not verified

Manifest file: <chunks_dir>/manifest.json
"""

import json
import logging
import time
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"


@dataclass
class ChunkInfo:
    """Information about a single chunk file."""
    index: int
    name: str
    size: int  # Chunk size in bytes
    offset: int  # Byte offset in original file

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> 'ChunkInfo':
        return cls(**data)


@dataclass
class ChunkManifest:
    """
    Record of one split run.

    Tells later stages:
    - Which chunk indices exist
    - How large each chunk is
    - Which file they came from
    """
    source_name: str
    source_size: int
    chunk_size: int
    max_chunks: int
    chunks: List[ChunkInfo]
    created_at: float = field(default_factory=time.time)

    @property
    def chunk_count(self) -> int:
        return len(self.chunks)

    @property
    def total_size(self) -> int:
        """Bytes covered by the chunks (less than source_size if truncated)."""
        return sum(c.size for c in self.chunks)

    @property
    def indices(self) -> List[int]:
        return sorted(c.index for c in self.chunks)

    def get_chunk(self, index: int) -> Optional[ChunkInfo]:
        """Get chunk info by index."""
        for chunk in self.chunks:
            if chunk.index == index:
                return chunk
        return None

    def to_dict(self) -> Dict:
        """Serialize to dictionary."""
        return {
            'source_name': self.source_name,
            'source_size': self.source_size,
            'chunk_size': self.chunk_size,
            'max_chunks': self.max_chunks,
            'chunks': [c.to_dict() for c in self.chunks],
            'created_at': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'ChunkManifest':
        """Deserialize from dictionary."""
        chunks = [ChunkInfo.from_dict(c) for c in data['chunks']]
        return cls(
            source_name=data['source_name'],
            source_size=data['source_size'],
            chunk_size=data['chunk_size'],
            max_chunks=data['max_chunks'],
            chunks=chunks,
            created_at=data.get('created_at', time.time()),
        )

    def to_json(self, indent: int = None) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> 'ChunkManifest':
        return cls.from_dict(json.loads(json_str))

    def save(self, path: Path):
        """Save manifest to a file."""
        with open(path, 'w') as f:
            f.write(self.to_json(indent=2))

    @classmethod
    def load(cls, path: Path) -> 'ChunkManifest':
        """Load manifest from a file."""
        with open(path, 'r') as f:
            return cls.from_json(f.read())


def manifest_path(directory: Path) -> Path:
    return Path(directory) / MANIFEST_NAME


def load_manifest(path: Path) -> Optional[ChunkManifest]:
    """
    Load a manifest, tolerating absence and corruption.

    `path` may be the manifest file or the chunk directory holding it.

    Returns:
        ChunkManifest, or None if missing or unreadable
    """
    path = Path(path)
    if path.is_dir():
        path = manifest_path(path)

    if not path.exists():
        return None

    try:
        return ChunkManifest.load(path)
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.warning(f"Ignoring unreadable manifest {path}: {e}")
        return None


def expected_indices(manifest: Optional[ChunkManifest], max_chunks: int) -> List[int]:
    """
    Chunk indices a stage should process.

    Uses the manifest when there is one, otherwise scans 0..max_chunks-1.
    """
    if manifest is not None:
        return manifest.indices
    return list(range(max_chunks))


def remove_manifest(directory: Path) -> bool:
    """
    Delete a manifest left in `directory` by an earlier run.

    Returns:
        True if a manifest was removed
    """
    path = manifest_path(directory)
    if not path.exists():
        return False

    try:
        path.unlink()
    except OSError as e:
        logger.warning(f"Could not remove stale manifest {path}: {e}")
        return False

    logger.info(f"Removed stale manifest: {path}")
    return True
