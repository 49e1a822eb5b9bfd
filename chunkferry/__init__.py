"""
chunkferry - split a file into chunks, move them through a storage
client, and merge them back.
"""

from .config import PipelineConfig, load_config
from .exceptions import ChunkFerryError, PipelineError, ConfigError, TransferError
from .pipeline import ChunkPipeline, PipelineResult

__version__ = '0.1.0'

__all__ = [
    'ChunkPipeline',
    'PipelineResult',
    'PipelineConfig',
    'load_config',
    'ChunkFerryError',
    'PipelineError',
    'ConfigError',
    'TransferError',
]
