"""Batch statistics collection and reporting."""

import math
from dataclasses import dataclass, field
from time import perf_counter


@dataclass
class BatchSummary:
    """Aggregate statistics for a batch run.

    Averages cover successful inputs only. Per-item values are kept and
    summed with ``math.fsum``, so the aggregates do not depend on the order
    in which workers finished.

    Duration Semantics:
    - total_processing_time_ms: Sum of per-item conversion times (may exceed
      wall time when items run in parallel)
    - wall_time_ms: Wall-clock time from start to finish
    """

    total: int = 0
    processed: int = 0
    errors: int = 0

    total_original_bytes: int = 0
    total_compressed_bytes: int = 0
    wall_time_ms: float = 0.0

    _processing_times: list[float] = field(default_factory=list, repr=False)
    _ratios: list[float] = field(default_factory=list, repr=False)
    _start: float = field(default_factory=perf_counter, repr=False)

    def add_success(
        self,
        processing_time_ms: float,
        compression_ratio: float,
        original_size: int,
        compressed_size: int,
    ) -> None:
        """Record a successful item.

        Args:
            processing_time_ms: Time the conversion took
            compression_ratio: Original size / compressed size
            original_size: Source bytes
            compressed_size: Output bytes
        """
        self.processed += 1
        self._processing_times.append(processing_time_ms)
        self._ratios.append(compression_ratio)
        self.total_original_bytes += original_size
        self.total_compressed_bytes += compressed_size

    def add_failure(self) -> None:
        """Record a failed item."""
        self.errors += 1

    def finish(self, total: int) -> None:
        """Mark the batch complete.

        Args:
            total: Number of inputs in the job
        """
        self.total = total
        self.wall_time_ms = round((perf_counter() - self._start) * 1000, 2)

    @property
    def total_processing_time_ms(self) -> float:
        return round(math.fsum(self._processing_times), 2)

    @property
    def average_processing_time_per_file(self) -> float:
        if not self._processing_times:
            return 0.0
        return round(math.fsum(self._processing_times) / len(self._processing_times), 2)

    @property
    def average_compression_ratio(self) -> float:
        if not self._ratios:
            return 0.0
        return round(math.fsum(self._ratios) / len(self._ratios), 2)

    @property
    def success_rate(self) -> float:
        """Calculate success rate as a percentage."""
        if self.total == 0:
            return 0.0
        return (self.processed / self.total) * 100

    def format_summary(self) -> str:
        """Format statistics as a human-readable summary.

        Returns:
            Multi-line summary string
        """
        lines = [f"Complete: {self.processed}/{self.total} converted, {self.errors} failed"]

        if self.processed > 0:
            lines.append(
                f"Time: {self.wall_time_ms / 1000:.1f}s wall"
                f" | {self.total_processing_time_ms / 1000:.1f}s cumulative"
                f" | {self.average_processing_time_per_file:.0f}ms avg/file"
            )
            lines.append(
                f"Size: {self.total_original_bytes:,} -> {self.total_compressed_bytes:,} bytes"
                f" | avg ratio {self.average_compression_ratio:.1f}x"
            )

        return "\n".join(lines)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization.

        Returns:
            Dictionary representation of the summary
        """
        return {
            "total": self.total,
            "processed": self.processed,
            "errors": self.errors,
            "total_processing_time_ms": self.total_processing_time_ms,
            "average_compression_ratio": self.average_compression_ratio,
            "total_original_bytes": self.total_original_bytes,
            "total_compressed_bytes": self.total_compressed_bytes,
            "average_processing_time_per_file": self.average_processing_time_per_file,
            "wall_time_ms": self.wall_time_ms,
            "success_rate": self.success_rate,
        }
