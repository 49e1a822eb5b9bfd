"""
Configuration Management

Handles loading configuration from environment variables and config files.
"""

import os
import shlex
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional
import json

from dotenv import load_dotenv

from .exceptions import ConfigError
from .file.chunker import CHUNK_SIZE, MAX_CHUNKS, MB
from .transfer.transport import DEFAULT_CLIENT

ENV_PREFIX = 'CHUNKFERRY_'


@dataclass
class PipelineConfig:
    """
    Chunk pipeline configuration.

    Configuration priority (highest to lowest):
    1. Command line options
    2. Environment variables (CHUNKFERRY_*)
    3. Config file (JSON)
    4. Default values

    Split, upload, download and merge have to agree on these values when
    they run as separate commands.
    """
    # Chunking
    chunk_size: int = CHUNK_SIZE  # bytes
    max_chunks: int = MAX_CHUNKS

    # Storage client
    client_command: str = DEFAULT_CLIENT
    fragment_size_mb: int = 400

    # Directories
    chunks_dir: Path = field(default_factory=lambda: Path('./chunks'))
    download_dir: Path = field(default_factory=lambda: Path('./downloaded_chunks'))
    use_manifest: bool = True

    # Logging
    log_level: str = 'INFO'

    @staticmethod
    def env_values() -> dict:
        """
        Values of the CHUNKFERRY_* variables that are actually set.

        Returns:
            Dictionary of field name -> parsed value
        """
        load_dotenv()

        values = {}

        # Chunking
        chunk_size_mb = os.getenv(f'{ENV_PREFIX}CHUNK_SIZE_MB')
        if chunk_size_mb:
            values['chunk_size'] = _parse_int('CHUNK_SIZE_MB', chunk_size_mb) * MB
        max_chunks = os.getenv(f'{ENV_PREFIX}MAX_CHUNKS')
        if max_chunks:
            values['max_chunks'] = _parse_int('MAX_CHUNKS', max_chunks)

        # Storage client
        client_command = os.getenv(f'{ENV_PREFIX}CLIENT')
        if client_command:
            values['client_command'] = client_command
        fragment_size_mb = os.getenv(f'{ENV_PREFIX}FRAGMENT_SIZE_MB')
        if fragment_size_mb:
            values['fragment_size_mb'] = _parse_int('FRAGMENT_SIZE_MB', fragment_size_mb)

        # Directories
        chunks_dir = os.getenv(f'{ENV_PREFIX}CHUNKS_DIR')
        if chunks_dir:
            values['chunks_dir'] = Path(chunks_dir)
        download_dir = os.getenv(f'{ENV_PREFIX}DOWNLOAD_DIR')
        if download_dir:
            values['download_dir'] = Path(download_dir)
        use_manifest = os.getenv(f'{ENV_PREFIX}USE_MANIFEST')
        if use_manifest:
            values['use_manifest'] = use_manifest.lower() == 'true'

        # Logging
        log_level = os.getenv(f'{ENV_PREFIX}LOG_LEVEL')
        if log_level:
            values['log_level'] = log_level

        return values

    @classmethod
    def from_env(cls) -> 'PipelineConfig':
        """Load configuration from environment variables."""
        config = cls()
        for name, value in cls.env_values().items():
            setattr(config, name, value)
        return config

    @classmethod
    def from_file(cls, path: Path) -> 'PipelineConfig':
        """Load configuration from a JSON file."""
        if not path.exists():
            return cls()

        try:
            with open(path) as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e

        config = cls()

        # Chunking
        config.chunk_size = data.get('chunk_size', config.chunk_size)
        config.max_chunks = data.get('max_chunks', config.max_chunks)

        # Storage client
        config.client_command = data.get('client_command', config.client_command)
        config.fragment_size_mb = data.get('fragment_size_mb', config.fragment_size_mb)

        # Directories
        if 'chunks_dir' in data:
            config.chunks_dir = Path(data['chunks_dir'])
        if 'download_dir' in data:
            config.download_dir = Path(data['download_dir'])
        config.use_manifest = data.get('use_manifest', config.use_manifest)

        # Logging
        config.log_level = data.get('log_level', config.log_level)

        return config

    def validate(self) -> 'PipelineConfig':
        """Check values; raises ConfigError on the first bad one."""
        if not isinstance(self.chunk_size, int) or self.chunk_size <= 0:
            raise ConfigError(f"chunk_size must be a positive integer, got {self.chunk_size!r}")
        if not isinstance(self.max_chunks, int) or self.max_chunks <= 0:
            raise ConfigError(f"max_chunks must be a positive integer, got {self.max_chunks!r}")
        if not isinstance(self.fragment_size_mb, int) or self.fragment_size_mb <= 0:
            raise ConfigError(
                f"fragment_size_mb must be a positive integer, got {self.fragment_size_mb!r}"
            )
        if not str(self.client_command).strip():
            raise ConfigError("client_command must not be empty")
        try:
            shlex.split(self.client_command)
        except ValueError as e:
            raise ConfigError(f"client_command {self.client_command!r} cannot be parsed: {e}") from None
        return self

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'chunk_size': self.chunk_size,
            'max_chunks': self.max_chunks,
            'client_command': self.client_command,
            'fragment_size_mb': self.fragment_size_mb,
            'chunks_dir': str(self.chunks_dir),
            'download_dir': str(self.download_dir),
            'use_manifest': self.use_manifest,
            'log_level': self.log_level,
        }

    def save(self, path: Path):
        """Save configuration to a JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


def _parse_int(name: str, value: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{name} must be an integer, got {value!r}") from None


def load_config(config_path: Optional[Path] = None) -> PipelineConfig:
    """
    Load configuration from file and environment.

    Environment variables override file settings.
    """
    # Start with defaults
    config = PipelineConfig()

    # Load from file if provided
    if config_path:
        config = PipelineConfig.from_file(Path(config_path))

    # Override with every environment variable that is set
    for name, value in PipelineConfig.env_values().items():
        setattr(config, name, value)

    return config
