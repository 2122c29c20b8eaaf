"""Decoder and encoder contracts.

The orchestration layer never touches pixels itself. It drives two opaque
collaborators through these protocols: a Decoder that turns a source into a
raster, and an Encoder that turns a raster into bytes of a concrete format.
Both are synchronous and may be slow; callers run them in worker threads.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

Source = str | Path | bytes


@dataclass(frozen=True)
class Dimensions:
    """Pixel dimensions of an image."""

    width: int
    height: int

    @property
    def megapixels(self) -> float:
        return self.width * self.height / 1_000_000

    def as_tuple(self) -> tuple[int, int]:
        return (self.width, self.height)


@dataclass(frozen=True)
class ImageMetadata:
    """Descriptive metadata available right after load, before decode."""

    width: int
    height: int
    format: str | None = None
    mode: str | None = None
    make: str | None = None
    model: str | None = None
    software: str | None = None
    iso: int | None = None
    shutter_speed: float | None = None
    aperture: float | None = None
    focal_length: float | None = None
    timestamp: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def dimensions(self) -> Dimensions:
        return Dimensions(self.width, self.height)


@dataclass(frozen=True)
class DecodedImage:
    """Result of a decode. ``raster`` is opaque to rawkit and read-only once built."""

    raster: Any
    width: int
    height: int

    @property
    def dimensions(self) -> Dimensions:
        return Dimensions(self.width, self.height)


@dataclass(frozen=True)
class EncodedImage:
    """Bytes produced by an encoder, with the dimensions actually written."""

    data: bytes
    width: int
    height: int

    @property
    def dimensions(self) -> Dimensions:
        return Dimensions(self.width, self.height)


@runtime_checkable
class Decoder(Protocol):
    """Opaque source decoder.

    ``load`` acquires a handle the caller exclusively owns until ``release``.
    Implementations raise ``LoadError`` / ``DecodeError`` for expected
    failures; anything else is wrapped by the session.
    """

    def load(self, source: Source) -> Any: ...

    def read_metadata(self, handle: Any) -> ImageMetadata: ...

    def decode(self, handle: Any) -> DecodedImage: ...

    def release(self, handle: Any) -> None: ...


@runtime_checkable
class Encoder(Protocol):
    """Opaque raster encoder.

    ``options`` holds only the options the target format accepts, already
    validated. ``size`` is the output size, or None to keep the raster size.
    Implementations must not mutate ``raster``. ``supports`` reports whether
    a format can be written at all, so callers can refuse before decoding.
    """

    def supports(self, format: str) -> bool: ...

    def encode(
        self,
        raster: Any,
        format: str,
        options: dict[str, Any],
        size: tuple[int, int] | None = None,
    ) -> EncodedImage: ...
