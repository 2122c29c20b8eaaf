"""Multi-format fan-out from a single decode.

All conversions of a fan-out read the same immutable raster, so they run
concurrently without further coordination. One failing output never aborts
the others: its slot holds a failed ConversionResult instead.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from pathlib import Path
from time import perf_counter
from typing import TYPE_CHECKING, Any

from rawkit.config.constants import FORMAT_EXTENSIONS
from rawkit.core.adapter import FormatAdapter
from rawkit.core.options import ConversionRequest, SizeSpec, build_request
from rawkit.core.results import ConversionResult, MultiSizeResult
from rawkit.exceptions import InvalidOptionError
from rawkit.utils.logging import get_logger

if TYPE_CHECKING:
    from rawkit.core.session import Session

log = get_logger(__name__)


def _format_of(request: ConversionRequest | Mapping[str, Any]) -> str:
    if isinstance(request, ConversionRequest):
        return request.format
    return str(request.get("format", "unknown"))


async def _convert_captured(
    adapter: FormatAdapter,
    session: Session,
    request: ConversionRequest | Mapping[str, Any],
    output_path: Path | None,
) -> ConversionResult:
    try:
        return await adapter.convert(session, request, output_path=output_path)
    except Exception as e:
        log.warning(
            "Fan-out conversion failed",
            source=session.source,
            format=_format_of(request),
            error=str(e),
        )
        return ConversionResult.failure(_format_of(request), e)


async def convert_many(
    session: Session,
    requests: Sequence[ConversionRequest | Mapping[str, Any]],
    output_dir: str | Path | None = None,
    adapter: FormatAdapter | None = None,
) -> list[ConversionResult]:
    """Run several conversions concurrently against one session.

    The source is decoded once up front; a decode failure is shared by every
    output and is raised instead of being captured per item.

    Args:
        session: Loaded session
        requests: Requests or option mappings
        output_dir: Also write each output as ``<stem>_<n>.<ext>`` here
        adapter: Adapter to use (defaults to one built from the session settings)

    Returns:
        One result per request, in request order
    """
    adapter = adapter or FormatAdapter(session.settings)
    await session.process()

    paths: list[Path | None] = [None] * len(requests)
    if output_dir is not None:
        directory = Path(output_dir)
        for index, request in enumerate(requests):
            try:
                fmt = build_request(request).format
            except InvalidOptionError:
                continue  # Reported by its own conversion below
            paths[index] = directory / f"{session.source_stem}_{index + 1}.{FORMAT_EXTENSIONS[fmt]}"

    results = await asyncio.gather(
        *(
            _convert_captured(adapter, session, request, path)
            for request, path in zip(requests, paths, strict=True)
        )
    )

    failures = sum(1 for result in results if not result.success)
    log.info(
        "Fan-out complete",
        source=session.source,
        outputs=len(results),
        failed=failures,
    )
    return list(results)


async def convert_multi_size(
    session: Session,
    sizes: Sequence[SizeSpec],
    output_dir: str | Path | None = None,
    adapter: FormatAdapter | None = None,
) -> MultiSizeResult:
    """Produce named sizes (e.g. thumbnail, web, full) from one decode.

    Args:
        session: Loaded session
        sizes: Named size specifications; names must be unique
        output_dir: Also write each output as ``<stem>_<name>.<ext>`` here
        adapter: Adapter to use

    Returns:
        Results keyed by size name, with total and per-size timing

    Raises:
        InvalidOptionError: If names repeat or any size has invalid options
    """
    names = [spec.name for spec in sizes]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise InvalidOptionError(
            f"Size names must be unique: {', '.join(duplicates)}", fields=["name"]
        )
    requests = [spec.to_request() for spec in sizes]

    adapter = adapter or FormatAdapter(session.settings)
    started = perf_counter()
    await session.process()

    paths: list[Path | None] = [None] * len(sizes)
    if output_dir is not None:
        directory = Path(output_dir)
        paths = [
            directory / f"{session.source_stem}_{spec.name}.{FORMAT_EXTENSIONS[request.format]}"
            for spec, request in zip(sizes, requests, strict=True)
        ]

    results = await asyncio.gather(
        *(
            _convert_captured(adapter, session, request, path)
            for request, path in zip(requests, paths, strict=True)
        )
    )
    total_ms = round((perf_counter() - started) * 1000, 2)

    return MultiSizeResult(
        sizes=dict(zip(names, results, strict=True)),
        total_time_ms=total_ms,
    )
