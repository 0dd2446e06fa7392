class RasterBatchError(Exception):
    """Base class for every error raised by the batch pipeline."""


class EmptyInput(RasterBatchError):
    """
    Nothing to render: no layers, no traits in any layer, or no images to edit.

    Pipelines raise this before any work starts. It is a status, not a crash:
    callers report it and produce no archive.
    """


class AssetDecodeFailure(RasterBatchError):
    """A source image could not be decoded to pixels."""

    def __init__(self, source: str, reason: str = "") -> None:
        self.source = source
        self.reason = reason
        message = f"Could not decode image '{source}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class CompositeGeometryFailure(RasterBatchError):
    """Cover fitting produced degenerate geometry (zero-sized image or target)."""


class PackagingFailure(RasterBatchError):
    """Archive serialization failed. Fatal for the run."""


class BatchCancelled(RasterBatchError):
    """A cancel request was observed between two batch steps."""

    def __init__(self, completed: int, total: int) -> None:
        self.completed = completed
        self.total = total
        super().__init__(f"Batch cancelled after {completed}/{total} items")


class ConfigError(RasterBatchError, ValueError):
    """A configuration value is missing or out of its accepted range."""
