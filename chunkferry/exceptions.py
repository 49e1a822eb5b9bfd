"""Exception classes for the chunk pipeline."""


class ChunkFerryError(Exception):
    """
    Base exception class for all pipeline errors.
    """
    pass


class PipelineError(ChunkFerryError):
    """
    Raised on a fatal condition: the input cannot be read, a required
    directory or the output file cannot be created, or a chunk cannot be
    written while splitting. The CLI exits non-zero on this error.
    """
    pass


class ConfigError(PipelineError):
    """
    Raised when configuration values are invalid.
    """
    pass


class TransferError(ChunkFerryError):
    """
    Raised when a single transport call cannot be started.

    Uploader and downloader treat it as a per-chunk failure.
    """
    pass
