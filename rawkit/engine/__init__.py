"""Decode/encode engines for rawkit."""

from rawkit.engine.base import (
    DecodedImage,
    Decoder,
    Dimensions,
    EncodedImage,
    Encoder,
    ImageMetadata,
    Source,
)
from rawkit.engine.pillow import PillowDecoder, PillowEncoder

__all__ = [
    "DecodedImage",
    "Decoder",
    "Dimensions",
    "EncodedImage",
    "Encoder",
    "ImageMetadata",
    "PillowDecoder",
    "PillowEncoder",
    "Source",
]
