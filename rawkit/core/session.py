"""Source session lifecycle and decode cache.

A Session owns one loaded source. Its decode runs at most once: concurrent
callers of ``process()`` share a single in-flight task, and every later
conversion reuses the cached raster.

    EMPTY --load--> LOADED --process--> PROCESSED --close--> CLOSED
                       |                                        ^
                       +------------------close-----------------+
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from enum import Enum
from pathlib import Path
from time import perf_counter
from typing import Any

import anyio

from rawkit.config.settings import RawkitSettings, get_settings
from rawkit.core.adapter import FormatAdapter
from rawkit.core.capabilities import raw_vendor_for
from rawkit.core.fanout import convert_many, convert_multi_size
from rawkit.core.optimizer import OptimizationResult, SettingsOptimizer
from rawkit.core.options import ConversionRequest, SizeSpec, build_request
from rawkit.core.results import ConversionResult, MultiSizeResult
from rawkit.engine.base import DecodedImage, Decoder, Dimensions, Encoder, ImageMetadata, Source
from rawkit.engine.pillow import PillowDecoder, PillowEncoder
from rawkit.exceptions import AlreadyClosedError, DecodeError, LoadError, NotLoadedError
from rawkit.utils.logging import get_logger

log = get_logger(__name__)


class SessionState(Enum):
    """Lifecycle states of a Session."""

    EMPTY = "empty"
    LOADED = "loaded"
    PROCESSED = "processed"
    CLOSED = "closed"


class Session:
    """One loaded source image and its cached decode.

    Use as an async context manager so the decoder handle is released on
    every exit path, including exceptions and timeouts::

        async with Session() as session:
            await session.load("photo.jpg")
            web = await session.convert({"format": "webp", "width": 1920})
            thumb = await session.thumbnail(max_size=300)
    """

    def __init__(
        self,
        decoder: Decoder | None = None,
        encoder: Encoder | None = None,
        settings: RawkitSettings | None = None,
    ) -> None:
        """Initialize an empty session.

        Args:
            decoder: Source decoder (defaults to PillowDecoder)
            encoder: Raster encoder (defaults to PillowEncoder)
            settings: Settings (defaults to the cached global settings)
        """
        self.settings = settings or get_settings()
        self.decoder = decoder or PillowDecoder(max_pixels=self.settings.conversion.max_pixels)
        self.encoder = encoder or PillowEncoder()

        self._state = SessionState.EMPTY
        self._loading = False
        self._handle: Any = None
        self._metadata: ImageMetadata | None = None
        self._decoded: DecodedImage | None = None
        self._source: str | None = None
        self._source_size = 0

        # Single-flight guard: the lock serializes task creation only
        self._decode_lock = asyncio.Lock()
        self._decode_task: asyncio.Task[DecodedImage] | None = None
        self._close_task: asyncio.Task[None] | None = None

        self.decode_count = 0
        self.decode_time_ms = 0.0

    async def __aenter__(self) -> Session:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------ state

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_processed(self) -> bool:
        """True once a decode has completed (the cached raster is available)."""
        return self._decoded is not None

    @property
    def source(self) -> str:
        self.ensure_ready("read source")
        return self._source or ""

    @property
    def source_size(self) -> int:
        """Size of the source in bytes."""
        self.ensure_ready("read source size")
        return self._source_size

    @property
    def source_stem(self) -> str:
        """Base name used when deriving output file names."""
        if self._source is None or self._source.startswith("<buffer"):
            return "image"
        return Path(self._source).stem

    @property
    def metadata(self) -> ImageMetadata:
        self.ensure_ready("read metadata")
        assert self._metadata is not None
        return self._metadata

    @property
    def original_dimensions(self) -> Dimensions:
        """Dimensions of the decoded raster, or the header dimensions before decode."""
        self.ensure_ready("read dimensions")
        if self._decoded is not None:
            return self._decoded.dimensions
        return self.metadata.dimensions

    def ensure_ready(self, operation: str) -> None:
        """Raise unless the session is loaded and not closed.

        Raises:
            AlreadyClosedError: If the session is closed
            NotLoadedError: If nothing has been loaded yet
        """
        if self._state is SessionState.CLOSED:
            raise AlreadyClosedError(operation)
        if self._state is SessionState.EMPTY:
            raise NotLoadedError(operation)

    # -------------------------------------------------------------- lifecycle

    async def load(self, source: Source) -> ImageMetadata:
        """Load a source and acquire the decoder handle.

        Args:
            source: File path or in-memory bytes

        Returns:
            Metadata read from the source header

        Raises:
            LoadError: If the source is unreadable, unsupported or corrupt,
                or the session already holds a source
            AlreadyClosedError: If the session is closed
        """
        if self._state is SessionState.CLOSED:
            raise AlreadyClosedError("load")
        is_buffer = isinstance(source, (bytes, bytearray))
        label = f"<buffer {len(source)} bytes>" if is_buffer else str(source)
        if self._state is not SessionState.EMPTY or self._loading:
            raise LoadError(label, f"session is {self._state.value}, a new Session is required")

        self._loading = True
        try:
            if isinstance(source, (bytes, bytearray)):
                size = len(source)
            else:
                try:
                    size = (await anyio.to_thread.run_sync(Path(source).stat)).st_size
                except OSError as e:
                    raise LoadError(label, f"unreadable source ({e})", cause=e) from e

            handle = await self._call_decoder(self.decoder.load, source, label)
            try:
                metadata = await self._call_decoder(self.decoder.read_metadata, handle, label)
            except BaseException:
                await anyio.to_thread.run_sync(self.decoder.release, handle)
                raise

            if self._state is SessionState.CLOSED:
                # Closed while loading; nothing else will release this handle
                await anyio.to_thread.run_sync(self.decoder.release, handle)
                raise AlreadyClosedError("load")

            self._handle = handle
            self._metadata = metadata
            self._source = label
            self._source_size = size
            self._state = SessionState.LOADED
        finally:
            self._loading = False

        suffix = Path(label).suffix if not label.startswith("<buffer") else ""
        log.info(
            "Source loaded",
            source=label,
            size=size,
            width=metadata.width,
            height=metadata.height,
            vendor=raw_vendor_for(suffix) if suffix else None,
        )
        return metadata

    async def _call_decoder(self, func: Any, arg: Any, label: str) -> Any:
        try:
            return await anyio.to_thread.run_sync(func, arg)
        except LoadError:
            raise
        except Exception as e:
            raise LoadError(label, str(e), cause=e) from e

    async def process(self) -> DecodedImage:
        """Decode the source once and return the cached raster.

        Concurrent callers await the same in-flight decode. After a decode
        failure the session stays LOADED and a later call retries.

        Raises:
            DecodeError: If the decoder fails
            NotLoadedError: If nothing has been loaded
            AlreadyClosedError: If the session is closed
        """
        self.ensure_ready("process")
        if self._decoded is not None:
            return self._decoded

        async with self._decode_lock:
            if self._decoded is not None:
                return self._decoded
            if self._decode_task is None:
                self._decode_task = asyncio.create_task(self._run_decode())
                self._decode_task.add_done_callback(_consume_task_result)
            task = self._decode_task

        # Shielded so a caller that gives up (timeout) does not cancel the
        # decode the other callers are waiting on
        return await asyncio.shield(task)

    async def _run_decode(self) -> DecodedImage:
        started = perf_counter()
        try:
            decoded = await anyio.to_thread.run_sync(self.decoder.decode, self._handle)
        except DecodeError:
            self._decode_task = None
            raise
        except Exception as e:
            self._decode_task = None
            raise DecodeError(self._source or "<unknown>", str(e), cause=e) from e

        elapsed_ms = (perf_counter() - started) * 1000
        self._decoded = decoded
        self.decode_count += 1
        self.decode_time_ms = round(elapsed_ms, 2)
        if self._state is SessionState.LOADED:
            self._state = SessionState.PROCESSED

        log.info(
            "Source decoded",
            source=self._source,
            width=decoded.width,
            height=decoded.height,
            elapsed_ms=self.decode_time_ms,
        )
        return decoded

    async def close(self) -> None:
        """Release the decoder handle. Safe to call more than once.

        An in-flight decode is allowed to finish before the handle is
        released. The caller waits for both even when its own scope has been
        cancelled, so a timed-out caller never outlives the decoder work it
        started.
        """
        if self._close_task is None:
            self._state = SessionState.CLOSED
            self._close_task = asyncio.ensure_future(self._release())
        with anyio.CancelScope(shield=True):
            await asyncio.shield(self._close_task)

    async def _release(self) -> None:
        task = self._decode_task
        if task is not None and not task.done():
            await asyncio.wait({task})

        handle, self._handle = self._handle, None
        self._decoded = None
        if handle is not None:
            await anyio.to_thread.run_sync(self.decoder.release, handle)
            log.debug("Session closed", source=self._source)

    # ------------------------------------------------------------- conversion

    async def convert(
        self,
        request: ConversionRequest | Mapping[str, Any] | None = None,
        output_path: str | Path | None = None,
        timeout: float | None = None,
        **options: Any,
    ) -> ConversionResult:
        """Convert the source once; see ``FormatAdapter.convert``."""
        return await FormatAdapter(self.settings).convert(
            self, build_request(request, **options), output_path=output_path, timeout=timeout
        )

    async def convert_many(
        self,
        requests: Sequence[ConversionRequest | Mapping[str, Any]],
        output_dir: str | Path | None = None,
    ) -> list[ConversionResult]:
        """Produce several outputs concurrently from one decode."""
        return await convert_many(self, requests, output_dir=output_dir)

    async def convert_multi_size(
        self,
        sizes: Sequence[SizeSpec],
        output_dir: str | Path | None = None,
    ) -> MultiSizeResult:
        """Produce named sizes concurrently from one decode."""
        return await convert_multi_size(self, sizes, output_dir=output_dir)

    async def thumbnail(
        self,
        max_size: int | None = None,
        quality: int | None = None,
        output_path: str | Path | None = None,
    ) -> ConversionResult:
        """JPEG thumbnail whose longest side is at most ``max_size``."""
        return await FormatAdapter(self.settings).thumbnail(
            self, max_size=max_size, quality=quality, output_path=output_path
        )

    def optimal_settings(self, usage: str = "web") -> OptimizationResult:
        """Recommended JPEG settings for this source and a usage hint."""
        return SettingsOptimizer().recommend(self.original_dimensions, usage)


def _consume_task_result(task: asyncio.Task) -> None:
    # Waiters may all have gone (timeouts); mark the outcome as retrieved
    if not task.cancelled():
        task.exception()
