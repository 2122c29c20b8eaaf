"""Format adapter: one ConversionRequest in, one ConversionResult out."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from pathlib import Path
from time import perf_counter
from typing import TYPE_CHECKING, Any

import anyio

from rawkit.config.settings import RawkitSettings, get_settings
from rawkit.core.options import ConversionRequest, build_request, fit_within
from rawkit.core.results import ConversionResult, compression_ratio, throughput_mbps
from rawkit.engine.base import DecodedImage, Dimensions, EncodedImage
from rawkit.exceptions import EncodeError, InvalidOptionError
from rawkit.utils.fs import write_bytes_atomic
from rawkit.utils.logging import get_logger

if TYPE_CHECKING:
    from rawkit.core.session import Session

log = get_logger(__name__)

SizeResolver = Callable[[Dimensions], tuple[int, int]]


class FormatAdapter:
    """Turns a validated request into an encoder call against a session's raster.

    Validation, including whether the encoder can write the format at all,
    happens before any decode or encode work. Per-format defaults come from
    the ``conversion`` settings section.
    """

    def __init__(self, settings: RawkitSettings | None = None) -> None:
        """Initialize the adapter.

        Args:
            settings: Settings supplying per-format defaults
        """
        self.settings = settings or get_settings()

    async def convert(
        self,
        session: Session,
        request: ConversionRequest | Mapping[str, Any] | None = None,
        output_path: str | Path | None = None,
        timeout: float | None = None,
    ) -> ConversionResult:
        """Convert the session's source according to ``request``.

        Decodes the source first if no decode has happened yet.

        Args:
            session: Loaded session
            request: Request or option mapping (defaults apply when None)
            output_path: Also write the encoded bytes here
            timeout: Seconds before the call gives up with TimeoutError

        Returns:
            The conversion result, including the encoded bytes

        Raises:
            InvalidOptionError: Options are out of range or unsupported for the format
            EncodeError: The encoder failed or the format is unavailable
            DecodeError: The pending decode failed
            NotLoadedError, AlreadyClosedError: Session is not usable
        """
        resolved = self._prepare(session, request)
        return await self._run(session, resolved, resolved.target_size, output_path, timeout)

    async def thumbnail(
        self,
        session: Session,
        max_size: int | None = None,
        quality: int | None = None,
        output_path: str | Path | None = None,
        timeout: float | None = None,
    ) -> ConversionResult:
        """JPEG thumbnail whose longest side is at most ``max_size``. Never upscales."""
        config = self.settings.conversion
        max_size = config.thumbnail_size if max_size is None else max_size
        if max_size < 1:
            raise InvalidOptionError("max_size must be a positive integer", fields=["max_size"])
        resolved = self._prepare(
            session,
            {"format": "jpeg", "quality": config.thumbnail_quality if quality is None else quality},
        )
        return await self._run(
            session, resolved, lambda dims: fit_within(dims, max_size), output_path, timeout
        )

    def _prepare(
        self, session: Session, request: ConversionRequest | Mapping[str, Any] | None
    ) -> ConversionRequest:
        session.ensure_ready("convert")
        resolved = build_request(request).with_defaults(self.settings.conversion)
        if not session.encoder.supports(resolved.format):
            raise EncodeError(resolved.format, "format unsupported on this platform")
        return resolved

    async def _run(
        self,
        session: Session,
        request: ConversionRequest,
        resolve_size: SizeResolver,
        output_path: str | Path | None,
        timeout: float | None,
    ) -> ConversionResult:
        if timeout is None:
            return await self._execute(session, request, resolve_size, output_path)
        try:
            with anyio.fail_after(timeout):
                return await self._execute(session, request, resolve_size, output_path)
        except TimeoutError as e:
            raise TimeoutError(
                f"{request.format} conversion of {session.source} timed out after {timeout}s"
            ) from e

    async def _execute(
        self,
        session: Session,
        request: ConversionRequest,
        resolve_size: SizeResolver,
        output_path: str | Path | None,
    ) -> ConversionResult:
        started = perf_counter()
        from_cache = session.is_processed
        decoded = await session.process()
        size = resolve_size(decoded.dimensions)

        encoded = await self._encode(session, decoded, request, size)
        if not encoded.data:
            raise EncodeError(request.format, "encoder produced no data")

        elapsed_ms = (perf_counter() - started) * 1000
        original_size = session.source_size
        result = ConversionResult(
            success=True,
            format=request.format,
            data=encoded.data,
            original_dimensions=decoded.dimensions,
            output_dimensions=encoded.dimensions,
            original_size=original_size,
            compressed_size=len(encoded.data),
            compression_ratio=compression_ratio(original_size, len(encoded.data)),
            processing_time_ms=round(elapsed_ms, 2),
            throughput_mbps=throughput_mbps(original_size, elapsed_ms),
            from_cache=from_cache,
        )

        if output_path is not None:
            result.output_path = await anyio.to_thread.run_sync(
                write_bytes_atomic, Path(output_path), encoded.data
            )

        log.debug(
            "Conversion complete",
            source=session.source,
            format=request.format,
            width=result.output_dimensions.width,
            height=result.output_dimensions.height,
            compressed_size=result.compressed_size,
            ratio=result.compression_ratio,
            elapsed_ms=result.processing_time_ms,
            from_cache=from_cache,
        )
        return result

    async def _encode(
        self,
        session: Session,
        decoded: DecodedImage,
        request: ConversionRequest,
        size: tuple[int, int],
    ) -> EncodedImage:
        target = None if size == decoded.dimensions.as_tuple() else size
        options = request.encoder_options()
        try:
            return await anyio.to_thread.run_sync(
                session.encoder.encode, decoded.raster, request.format, options, target
            )
        except EncodeError:
            raise
        except Exception as e:
            raise EncodeError(request.format, str(e), cause=e) from e
