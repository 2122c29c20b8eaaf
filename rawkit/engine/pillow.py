"""Pillow-backed decoder and encoder.

Pillow reads the common raster formats (JPEG, PNG, TIFF, WebP, BMP, ...) and
the embedded previews of some RAW containers. Engines for true sensor data
plug in through the same protocols.
"""

from __future__ import annotations

import io
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from PIL import ExifTags, Image, ImageOps, UnidentifiedImageError, features

from rawkit.config.constants import DEFAULT_MAX_PIXELS, PILLOW_FORMATS
from rawkit.engine.base import DecodedImage, EncodedImage, ImageMetadata, Source
from rawkit.exceptions import DecodeError, EncodeError, LoadError
from rawkit.utils.logging import get_logger

log = get_logger(__name__)

_SUBSAMPLING_JPEG = {"4:4:4": 0, "4:2:2": 1, "4:2:0": 2}

_TIFF_COMPRESSION = {
    "none": "raw",
    "lzw": "tiff_lzw",
    "jpeg": "jpeg",
    "deflate": "tiff_deflate",
    "packbits": "packbits",
}

# Feature flags that gate optional Pillow codecs
_CODEC_FEATURES = {
    "webp": "webp",
    "avif": "avif",
}


@dataclass
class PillowHandle:
    """An opened, not yet decoded, Pillow image."""

    image: Image.Image
    label: str
    stream: io.BytesIO | None = None


def codec_available(format: str) -> bool:
    """Check whether this Pillow build can write ``format``."""
    pil_format = PILLOW_FORMATS.get(format)
    if pil_format is None:
        return False
    feature = _CODEC_FEATURES.get(format)
    if feature is not None:
        try:
            if not features.check(feature):
                return False
        except ValueError:
            # Pillow builds that predate the feature name
            return False
    Image.init()
    return pil_format in Image.SAVE


def _rational(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return None


def _flatten_alpha(image: Image.Image) -> Image.Image:
    """Composite transparent images onto white for formats without alpha."""
    if image.mode in ("RGBA", "LA") or (image.mode == "P" and "transparency" in image.info):
        rgba = image.convert("RGBA")
        background = Image.new("RGB", rgba.size, (255, 255, 255))
        background.paste(rgba, mask=rgba.split()[3])
        return background
    if image.mode not in ("RGB", "L"):
        return image.convert("RGB")
    return image


class PillowDecoder:
    """Decoder that opens sources with Pillow."""

    def __init__(self, max_pixels: int = DEFAULT_MAX_PIXELS) -> None:
        """Initialize the decoder.

        Args:
            max_pixels: Refuse to decode rasters larger than this
        """
        self.max_pixels = max_pixels

    def load(self, source: Source) -> PillowHandle:
        if isinstance(source, (bytes, bytearray)):
            label = f"<buffer {len(source)} bytes>"
            stream = io.BytesIO(source)
            try:
                image = Image.open(stream)
            except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
                stream.close()
                raise LoadError(label, "unsupported or corrupt image data", cause=e) from e
            return PillowHandle(image=image, label=label, stream=stream)

        path = Path(source)
        if not path.is_file():
            raise LoadError(path, "file not found")
        try:
            image = Image.open(path)
        except (UnidentifiedImageError, Image.DecompressionBombError) as e:
            raise LoadError(path, "unsupported or corrupt image file", cause=e) from e
        except OSError as e:
            raise LoadError(path, f"unreadable file ({e})", cause=e) from e
        return PillowHandle(image=image, label=str(path))

    def read_metadata(self, handle: PillowHandle) -> ImageMetadata:
        image = handle.image
        exif = image.getexif()
        details = exif.get_ifd(ExifTags.IFD.Exif) if exif else {}

        iso = details.get(ExifTags.Base.ISOSpeedRatings)
        if isinstance(iso, tuple):
            iso = iso[0] if iso else None

        return ImageMetadata(
            width=image.width,
            height=image.height,
            format=image.format,
            mode=image.mode,
            make=exif.get(ExifTags.Base.Make),
            model=exif.get(ExifTags.Base.Model),
            software=exif.get(ExifTags.Base.Software),
            iso=int(iso) if iso is not None else None,
            shutter_speed=_rational(details.get(ExifTags.Base.ExposureTime)),
            aperture=_rational(details.get(ExifTags.Base.FNumber)),
            focal_length=_rational(details.get(ExifTags.Base.FocalLength)),
            timestamp=exif.get(ExifTags.Base.DateTime),
        )

    def decode(self, handle: PillowHandle) -> DecodedImage:
        image = handle.image
        if image.width * image.height > self.max_pixels:
            raise DecodeError(
                handle.label,
                f"{image.width}x{image.height} exceeds the {self.max_pixels} pixel limit",
            )
        try:
            image.load()
            raster = ImageOps.exif_transpose(image)
            if raster.mode not in ("RGB", "RGBA", "L"):
                has_alpha = "A" in raster.getbands() or "transparency" in raster.info
                raster = raster.convert("RGBA" if has_alpha else "RGB")
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            raise DecodeError(handle.label, str(e), cause=e) from e

        log.debug("Decoded image", source=handle.label, width=raster.width, height=raster.height)
        return DecodedImage(raster=raster, width=raster.width, height=raster.height)

    def release(self, handle: PillowHandle) -> None:
        handle.image.close()
        if handle.stream is not None:
            handle.stream.close()


class PillowEncoder:
    """Encoder that writes rasters with Pillow's save plugins."""

    def supports(self, format: str) -> bool:
        return codec_available(format)

    def encode(
        self,
        raster: Image.Image,
        format: str,
        options: dict[str, Any],
        size: tuple[int, int] | None = None,
    ) -> EncodedImage:
        if not codec_available(format):
            raise EncodeError(format, "format unsupported on this platform")
        pil_format = PILLOW_FORMATS[format]

        image = raster
        if size is not None and size != raster.size:
            # resize() returns a new image; the shared raster is left untouched
            image = raster.resize(size, Image.Resampling.LANCZOS)

        if format in ("jpeg", "ppm"):
            image = _flatten_alpha(image)

        save_kwargs = self._save_options(format, options)
        output = io.BytesIO()
        try:
            image.save(output, format=pil_format, **save_kwargs)
        except (OSError, ValueError, KeyError) as e:
            raise EncodeError(format, str(e), cause=e) from e

        return EncodedImage(data=output.getvalue(), width=image.width, height=image.height)

    def _save_options(self, format: str, options: dict[str, Any]) -> dict[str, Any]:
        """Map normalized options onto Pillow save() keyword arguments."""
        kwargs: dict[str, Any] = {}

        if format == "jpeg":
            kwargs["quality"] = options.get("quality")
            kwargs["progressive"] = bool(options.get("progressive", False))
            if options.get("chroma_subsampling") is not None:
                kwargs["subsampling"] = _SUBSAMPLING_JPEG[options["chroma_subsampling"]]
            effort = options.get("effort")
            kwargs["optimize"] = effort is None or effort > 0
        elif format == "png":
            kwargs["compress_level"] = options.get("compression_level")
        elif format == "webp":
            kwargs["quality"] = options.get("quality")
            kwargs["lossless"] = bool(options.get("lossless", False))
            if options.get("effort") is not None:
                kwargs["method"] = options["effort"]
        elif format == "avif":
            if options.get("lossless"):
                kwargs["quality"] = 100
                kwargs["subsampling"] = "4:4:4"
            else:
                kwargs["quality"] = options.get("quality")
                if options.get("chroma_subsampling") is not None:
                    kwargs["subsampling"] = options["chroma_subsampling"]
            if options.get("effort") is not None:
                kwargs["speed"] = 10 - options["effort"]
        elif format == "tiff":
            compression = options.get("tiff_compression")
            if compression is not None:
                kwargs["compression"] = _TIFF_COMPRESSION[compression]
            if compression == "jpeg" and options.get("quality") is not None:
                kwargs["quality"] = options["quality"]

        return {key: value for key, value in kwargs.items() if value is not None}
