"""
Storage Transport

Design Decision: Transport Abstraction
======================================

Options Considered:
1. Call the storage client binary directly from the uploader/downloader
   - Simple, but the pipeline is welded to one client
2. Transport interface with one implementation per backend
   - Pipeline logic never changes when the backend does
   - A fake transport makes stages testable without a network

Decision: StorageTransport interface
- CommandLineTransport runs the storage client as a subprocess
- SDKTransport marks where an SDK-backed client plugs in; it is not
  implemented and reports itself unavailable
- resolve_transport() picks the command line client when it is on PATH

Command shape:
    <client> upload --fragment-size <N>MB <path>
    <client> download --fragment-size <N>MB --output <path> <remote-id>

Success is exit status 0. Nothing else about the upload is verified.
"""

import asyncio
import logging
import shlex
import shutil
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from ..exceptions import TransferError

logger = logging.getLogger(__name__)

DEFAULT_CLIENT = "0g-storage-client"


@dataclass
class TransferReport:
    """Outcome of an upload or download batch."""
    operation: str
    transport: str
    attempted: List[int] = field(default_factory=list)
    succeeded: List[int] = field(default_factory=list)
    failed: List[int] = field(default_factory=list)
    skipped: List[int] = field(default_factory=list)
    bytes_transferred: int = 0
    transport_available: bool = True

    @property
    def ok(self) -> bool:
        return self.transport_available and not self.failed


class StorageTransport(ABC):
    """Moves single chunk files to and from the storage network."""

    name = "transport"

    @property
    def available(self) -> bool:
        return True

    @abstractmethod
    async def upload(self, path: Path, fragment_size_mb: int) -> bool:
        """Upload one chunk file. Returns True on success."""
        pass

    @abstractmethod
    async def download(self, remote_id: str, output_path: Path,
                       fragment_size_mb: int) -> bool:
        """Fetch `remote_id` into `output_path`. Returns True on success."""
        pass

    def describe(self, operation: str) -> str:
        """Human readable notice shown when this transport cannot be used."""
        return f"{self.name} transport cannot {operation}"


class CommandLineTransport(StorageTransport):
    """
    Runs the storage client binary once per chunk.

    The client's stdout and stderr are inherited, so its output goes
    straight to the caller's console. Each call blocks until the client
    exits; no timeout is applied.
    """

    name = "cli"

    def __init__(self, command: str = DEFAULT_CLIENT):
        self.command = command
        self.argv = shlex.split(command)
        self.executable = shutil.which(self.argv[0]) if self.argv else None

    @property
    def available(self) -> bool:
        return self.executable is not None

    def upload_args(self, path: Path, fragment_size_mb: int) -> List[str]:
        return [
            *self.argv,
            "upload",
            "--fragment-size", f"{fragment_size_mb}MB",
            str(path),
        ]

    def download_args(self, remote_id: str, output_path: Path,
                      fragment_size_mb: int) -> List[str]:
        return [
            *self.argv,
            "download",
            "--fragment-size", f"{fragment_size_mb}MB",
            "--output", str(output_path),
            remote_id,
        ]

    async def run(self, args: List[str]) -> int:
        """Run the client and return its exit status."""
        logger.debug(f"Running: {shlex.join(args)}")
        try:
            process = await asyncio.create_subprocess_exec(*args)
        except OSError as e:
            raise TransferError(f"Cannot start {args[0]}: {e}") from e
        return await process.wait()

    async def upload(self, path: Path, fragment_size_mb: int) -> bool:
        returncode = await self.run(self.upload_args(path, fragment_size_mb))
        if returncode != 0:
            logger.debug(f"{self.argv[0]} upload exited with status {returncode}")
        return returncode == 0

    async def download(self, remote_id: str, output_path: Path,
                       fragment_size_mb: int) -> bool:
        returncode = await self.run(self.download_args(remote_id, output_path, fragment_size_mb))
        if returncode != 0:
            logger.debug(f"{self.argv[0]} download exited with status {returncode}")
        return returncode == 0


SDK_NOTICE = """\
An SDK-backed transport can replace the storage client binary:

    class SDKTransport(StorageTransport):
        async def {operation}(self, ...):
            # call the storage SDK for one chunk, return True on success

Pass an instance to ChunkPipeline(config, transport=...).
Fragment size to forward: {fragment_size_mb}MB"""


class SDKTransport(StorageTransport):
    """
    Placeholder for a storage SDK integration.

    Always unavailable; uploader and downloader show `describe()` instead
    of transferring anything.
    """

    name = "sdk"

    def __init__(self, fragment_size_mb: int = 400):
        self.fragment_size_mb = fragment_size_mb

    @property
    def available(self) -> bool:
        return False

    async def upload(self, path: Path, fragment_size_mb: int) -> bool:
        raise NotImplementedError("SDK upload is not implemented")

    async def download(self, remote_id: str, output_path: Path,
                       fragment_size_mb: int) -> bool:
        raise NotImplementedError("SDK download is not implemented")

    def describe(self, operation: str) -> str:
        return SDK_NOTICE.format(operation=operation, fragment_size_mb=self.fragment_size_mb)


def resolve_transport(command: str = DEFAULT_CLIENT, fragment_size_mb: int = 400) -> StorageTransport:
    """
    Pick the transport for `command`.

    Returns the command line transport when its executable is on PATH,
    otherwise the SDK placeholder.
    """
    transport = CommandLineTransport(command)
    if transport.available:
        logger.debug(f"Using storage client: {transport.executable}")
        return transport

    logger.warning(f"Storage client '{command}' not found on PATH")
    logger.warning("Install it and make sure it is on PATH; falling back to SDK transport")
    return SDKTransport(fragment_size_mb=fragment_size_mb)
