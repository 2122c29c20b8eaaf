"""Batch scheduler: many independent sessions under one concurrency ceiling."""

from __future__ import annotations

import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from pathlib import Path
from time import perf_counter
from typing import Any

import anyio
from structlog.contextvars import bound_contextvars

from rawkit.config.constants import FORMAT_EXTENSIONS
from rawkit.config.settings import RawkitSettings, get_settings
from rawkit.core.adapter import FormatAdapter
from rawkit.core.options import ConversionRequest, build_request
from rawkit.core.results import (
    BatchFailure,
    BatchResult,
    BatchSuccess,
    ConversionResult,
    throughput_mbps,
)
from rawkit.core.session import Session
from rawkit.engine.base import Decoder, Encoder
from rawkit.exceptions import BatchSetupError, InvalidOptionError
from rawkit.utils.concurrency import TaskResult, WorkerPool
from rawkit.utils.fs import ensure_directory, get_unique_path
from rawkit.utils.logging import get_logger
from rawkit.utils.stats import BatchSummary

log = get_logger(__name__)


@dataclass
class BatchJob:
    """A set of inputs converted with shared options.

    ``concurrency_limit`` and ``item_timeout`` fall back to the
    ``concurrency`` settings section when None.
    """

    inputs: Sequence[str | Path]
    output_dir: str | Path
    options: ConversionRequest | Mapping[str, Any] | None = None
    concurrency_limit: int | None = None
    item_timeout: float | None = None


@dataclass
class _WorkItem:
    input: Path
    output: Path

    def __str__(self) -> str:
        return str(self.input)


@dataclass
class _Plan:
    request: ConversionRequest
    limit: int
    item_timeout: float | None
    items: list[_WorkItem] = field(default_factory=list)


class BatchScheduler:
    """Runs a BatchJob and always returns a full accounting of every input.

    Each input gets its own Session (load, convert, close), so inputs
    share no mutable state. A failure on one input becomes a ``failed`` entry
    and never stops the rest. Only setup faults (invalid options or limits,
    an output directory that cannot be created) and the optional whole-batch
    deadline make ``run`` itself raise.
    """

    def __init__(
        self,
        settings: RawkitSettings | None = None,
        decoder: Decoder | None = None,
        encoder: Encoder | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            settings: Settings (defaults to the cached global settings)
            decoder: Decoder shared by all sessions (must be stateless)
            encoder: Encoder shared by all sessions (must be stateless)
        """
        self.settings = settings or get_settings()
        self.decoder = decoder
        self.encoder = encoder
        self.adapter = FormatAdapter(self.settings)

    async def run(self, job: BatchJob, timeout: float | None = None) -> BatchResult:
        """Convert every input of ``job``.

        Args:
            job: Inputs, output directory and shared options
            timeout: Seconds for the whole batch before TimeoutError

        Returns:
            Successful and failed entries plus the aggregate summary

        Raises:
            InvalidOptionError: If the shared options or limits are invalid
            BatchSetupError: If the output directory cannot be created
            TimeoutError: If ``timeout`` expires
        """
        if timeout is None:
            return await self._run(job)
        try:
            with anyio.fail_after(timeout):
                return await self._run(job)
        except TimeoutError as e:
            raise TimeoutError(
                f"Batch of {len(job.inputs)} input(s) timed out after {timeout}s"
            ) from e

    async def _run(self, job: BatchJob) -> BatchResult:
        plan = await self._plan(job)
        batch_id = uuid.uuid4().hex[:8]

        with bound_contextvars(batch_id=batch_id):
            log.info(
                "Batch started",
                inputs=len(plan.items),
                format=plan.request.format,
                concurrency=plan.limit,
            )
            summary = BatchSummary()
            pool = WorkerPool(max_workers=plan.limit)

            async def convert_item(item: _WorkItem) -> ConversionResult:
                return await self._convert_one(item, plan.request, plan.item_timeout)

            task_results = await pool.map(plan.items, convert_item)
            result = self._collect(task_results, summary)
            summary.finish(total=len(plan.items))

            log.info(
                "Batch complete",
                processed=summary.processed,
                errors=summary.errors,
                wall_time_ms=summary.wall_time_ms,
                average_ratio=summary.average_compression_ratio,
            )
        return result

    async def _plan(self, job: BatchJob) -> _Plan:
        request = build_request(job.options).with_defaults(self.settings.conversion)

        limit = job.concurrency_limit
        if limit is None:
            limit = self.settings.concurrency.max_concurrency
        if limit < 1:
            raise InvalidOptionError(
                "concurrency_limit must be at least 1", fields=["concurrency_limit"]
            )
        item_timeout = job.item_timeout
        if item_timeout is None:
            item_timeout = self.settings.concurrency.item_timeout
        if item_timeout is not None and item_timeout <= 0:
            raise InvalidOptionError("item_timeout must be positive", fields=["item_timeout"])

        output_dir = Path(job.output_dir)
        try:
            await anyio.to_thread.run_sync(ensure_directory, output_dir)
        except OSError as e:
            raise BatchSetupError(output_dir, e) from e

        plan = _Plan(request=request, limit=limit, item_timeout=item_timeout)
        extension = FORMAT_EXTENSIONS[request.format]
        rename = self.settings.output.on_conflict == "rename"
        reserved: set[Path] = set()
        for source in job.inputs:
            source_path = Path(source)
            output = output_dir / f"{source_path.stem}.{extension}"
            if rename:
                output = get_unique_path(output, reserved)
            elif output in reserved:
                # Two inputs with the same stem must not overwrite each other
                output = get_unique_path(output, reserved | {output})
            reserved.add(output)
            plan.items.append(_WorkItem(input=source_path, output=output))
        return plan

    async def _convert_one(
        self,
        item: _WorkItem,
        request: ConversionRequest,
        item_timeout: float | None,
    ) -> ConversionResult:
        # The deadline covers the work only. Leaving the session block waits for
        # an abandoned decode and the release, so a worker takes its next input
        # only once the decoder is idle again.
        async with Session(self.decoder, self.encoder, self.settings) as session:
            started = perf_counter()
            try:
                with anyio.fail_after(item_timeout):
                    await session.load(item.input)
                    result = await self.adapter.convert(session, request, output_path=item.output)
            except TimeoutError as e:
                raise TimeoutError(f"{item.input} timed out after {item_timeout}s") from e
            elapsed_ms = (perf_counter() - started) * 1000

        # Per-file time covers load, decode and encode
        return replace(
            result,
            processing_time_ms=round(elapsed_ms, 2),
            throughput_mbps=throughput_mbps(result.original_size, elapsed_ms),
        )

    def _collect(
        self, task_results: list[TaskResult[_WorkItem]], summary: BatchSummary
    ) -> BatchResult:
        result = BatchResult(summary=summary)
        for task_result in sorted(task_results, key=lambda r: r.index):
            item = task_result.item
            if task_result.success:
                conversion: ConversionResult = task_result.result
                result.successful.append(
                    BatchSuccess(
                        input=str(item.input),
                        output=conversion.output_path or item.output,
                        result=conversion,
                    )
                )
                summary.add_success(
                    processing_time_ms=conversion.processing_time_ms,
                    compression_ratio=conversion.compression_ratio,
                    original_size=conversion.original_size,
                    compressed_size=conversion.compressed_size,
                )
            else:
                result.failed.append(
                    BatchFailure(
                        input=str(item.input),
                        error=task_result.error or "unknown error",
                        error_type=task_result.error_type or "Exception",
                    )
                )
                summary.add_failure()
        return result
