"""
Transfer Module - Chunk Upload/Download

Moves chunk files to and from the storage network through a transport.
"""

from .transport import (
    StorageTransport, CommandLineTransport, SDKTransport, TransferReport,
    resolve_transport, DEFAULT_CLIENT,
)
from .uploader import ChunkUploader
from .downloader import ChunkDownloader

__all__ = [
    'StorageTransport',
    'CommandLineTransport',
    'SDKTransport',
    'TransferReport',
    'resolve_transport',
    'DEFAULT_CLIENT',
    'ChunkUploader',
    'ChunkDownloader',
]
