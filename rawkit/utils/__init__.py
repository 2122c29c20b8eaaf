"""Utility module for rawkit."""

from rawkit.utils.concurrency import TaskResult, WorkerPool
from rawkit.utils.fs import (
    atomic_write,
    ensure_directory,
    format_size,
    get_unique_path,
    write_bytes_atomic,
)
from rawkit.utils.stats import BatchSummary

__all__ = [
    # Concurrency
    "WorkerPool",
    "TaskResult",
    # File system
    "ensure_directory",
    "get_unique_path",
    "atomic_write",
    "write_bytes_atomic",
    "format_size",
    # Statistics
    "BatchSummary",
]
