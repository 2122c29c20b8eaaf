"""Custom exceptions for rawkit."""

from pathlib import Path


class RawkitError(Exception):
    """Base exception class for rawkit."""

    pass


class LoadError(RawkitError):
    """Source could not be loaded, or the session cannot accept a load."""

    def __init__(self, source: str | Path, message: str, cause: Exception | None = None) -> None:
        self.source = source
        self.cause = cause
        super().__init__(f"Cannot load {source}: {message}")


class NotLoadedError(RawkitError):
    """Operation attempted before a source was loaded."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Cannot {operation}: no source loaded")


class AlreadyClosedError(RawkitError):
    """Operation attempted on a closed session."""

    def __init__(self, operation: str) -> None:
        self.operation = operation
        super().__init__(f"Cannot {operation}: session is closed")


class DecodeError(RawkitError):
    """Native decode failure. The session stays loaded and may retry."""

    def __init__(self, source: str | Path, message: str, cause: Exception | None = None) -> None:
        self.source = source
        self.cause = cause
        super().__init__(f"Decode failed for {source}: {message}")


class EncodeError(RawkitError):
    """Format-specific encode failure, including codecs missing from this build."""

    def __init__(self, format: str, message: str, cause: Exception | None = None) -> None:
        self.format = format
        self.cause = cause
        super().__init__(f"Encoding to {format} failed: {message}")


class InvalidOptionError(RawkitError):
    """Out-of-range or malformed conversion options."""

    def __init__(self, message: str, fields: list[str] | None = None) -> None:
        self.fields = fields or []
        super().__init__(message)


class BatchSetupError(RawkitError):
    """Batch could not start (e.g. the output location cannot be created)."""

    def __init__(self, output_dir: Path, cause: Exception | None = None) -> None:
        self.output_dir = output_dir
        self.cause = cause
        super().__init__(f"Cannot prepare output directory {output_dir}: {cause}")


class ConfigurationError(RawkitError):
    """Configuration error."""

    pass
