"""Result types for conversions and batches."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from rawkit.engine.base import Dimensions
from rawkit.utils.stats import BatchSummary

_BYTES_PER_MB = 1024 * 1024


def compression_ratio(original_size: int, compressed_size: int) -> float:
    """Original size divided by compressed size, rounded to two decimals."""
    if compressed_size <= 0:
        return 0.0
    return round(original_size / compressed_size, 2)


def throughput_mbps(original_size: int, elapsed_ms: float) -> float:
    """Source megabytes processed per second."""
    if elapsed_ms <= 0:
        return 0.0
    return round((original_size / _BYTES_PER_MB) / (elapsed_ms / 1000), 2)


@dataclass
class ConversionResult:
    """Outcome of one conversion.

    ``from_cache`` is True when the decode this conversion used had already
    completed before the call started, i.e. the call only paid for encoding.
    """

    success: bool
    format: str
    data: bytes = b""
    original_dimensions: Dimensions | None = None
    output_dimensions: Dimensions | None = None
    original_size: int = 0
    compressed_size: int = 0
    compression_ratio: float = 0.0
    processing_time_ms: float = 0.0
    throughput_mbps: float = 0.0
    from_cache: bool = False
    output_path: Path | None = None
    error: str | None = None
    error_type: str | None = None

    @classmethod
    def failure(cls, format: str, error: Exception) -> "ConversionResult":
        """Build a result that captures ``error`` instead of raising it."""
        return cls(success=False, format=format, error=str(error), error_type=type(error).__name__)

    @property
    def savings_percent(self) -> float:
        """Percentage of bytes saved relative to the source."""
        if self.original_size == 0:
            return 0.0
        return (1 - self.compressed_size / self.original_size) * 100

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary (without the encoded bytes)."""
        return {
            "success": self.success,
            "format": self.format,
            "original_dimensions": (
                self.original_dimensions.as_tuple() if self.original_dimensions else None
            ),
            "output_dimensions": (
                self.output_dimensions.as_tuple() if self.output_dimensions else None
            ),
            "original_size": self.original_size,
            "compressed_size": self.compressed_size,
            "compression_ratio": self.compression_ratio,
            "processing_time_ms": self.processing_time_ms,
            "throughput_mbps": self.throughput_mbps,
            "from_cache": self.from_cache,
            "output_path": str(self.output_path) if self.output_path else None,
            "error": self.error,
            "error_type": self.error_type,
        }


@dataclass
class MultiSizeResult:
    """Named outputs produced from one decode."""

    sizes: dict[str, ConversionResult] = field(default_factory=dict)
    total_time_ms: float = 0.0

    @property
    def average_time_per_size(self) -> float:
        if not self.sizes:
            return 0.0
        return round(self.total_time_ms / len(self.sizes), 2)

    @property
    def success(self) -> bool:
        return all(result.success for result in self.sizes.values())


@dataclass
class BatchSuccess:
    """A batch input that converted."""

    input: str
    output: Path
    result: ConversionResult


@dataclass
class BatchFailure:
    """A batch input that failed, with the reason."""

    input: str
    error: str
    error_type: str


@dataclass
class BatchResult:
    """Full accounting of a batch run."""

    successful: list[BatchSuccess] = field(default_factory=list)
    failed: list[BatchFailure] = field(default_factory=list)
    summary: BatchSummary = field(default_factory=BatchSummary)
