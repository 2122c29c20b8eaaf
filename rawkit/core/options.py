"""Validated conversion options.

Options arrive as loose mappings (often camelCase, from JSON or callers that
mirror other tools) and are turned into a frozen ``ConversionRequest`` at the
boundary. Anything out of range, unknown, or not meaningful for the target
format is rejected with ``InvalidOptionError`` before any decode or encode
work starts.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from rawkit.config.constants import DEFAULT_FORMAT, FORMAT_OPTIONS, OUTPUT_FORMATS
from rawkit.config.settings import ConversionConfig
from rawkit.core.capabilities import normalize_format
from rawkit.engine.base import Dimensions
from rawkit.exceptions import InvalidOptionError

# Fields that are not format-specific
_COMMON_FIELDS = {"format", "width", "height"}

_WEBP_MAX_EFFORT = 6


class ConversionRequest(BaseModel):
    """One requested output: format, size and format-specific options."""

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    format: str = DEFAULT_FORMAT
    quality: int | None = Field(default=None, ge=1, le=100)
    width: int | None = Field(default=None, gt=0)
    height: int | None = Field(default=None, gt=0)
    progressive: bool | None = None
    chroma_subsampling: Literal["4:4:4", "4:2:2", "4:2:0"] | None = None
    compression_level: int | None = Field(default=None, ge=0, le=9)
    effort: int | None = Field(default=None, ge=0, le=10)
    lossless: bool | None = None
    tiff_compression: Literal["none", "lzw", "jpeg", "deflate", "packbits"] | None = None

    @field_validator("format", mode="before")
    @classmethod
    def _normalize_format(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("format must be a string")
        fmt = normalize_format(value)
        if fmt not in OUTPUT_FORMATS:
            raise ValueError(f"unsupported format '{value}', expected one of {OUTPUT_FORMATS}")
        return fmt

    @model_validator(mode="after")
    def _check_format_options(self) -> "ConversionRequest":
        allowed = FORMAT_OPTIONS[self.format]
        given = {name for name in self.option_names() if name not in _COMMON_FIELDS}
        unsupported = sorted(given - allowed)
        if unsupported:
            raise ValueError(f"{self.format} does not support option(s): {', '.join(unsupported)}")
        if self.format == "webp" and self.effort is not None and self.effort > _WEBP_MAX_EFFORT:
            raise ValueError(f"webp effort must be between 0 and {_WEBP_MAX_EFFORT}")
        if self.format == "tiff" and self.quality is not None and self.tiff_compression != "jpeg":
            raise ValueError("tiff quality requires tiff_compression='jpeg'")
        return self

    def option_names(self) -> set[str]:
        """Names of the fields the caller actually set (non-None)."""
        return {name for name, value in self if value is not None}

    def encoder_options(self) -> dict[str, Any]:
        """Format-specific options to hand to the encoder."""
        allowed = FORMAT_OPTIONS[self.format]
        return {name: value for name, value in self if name in allowed and value is not None}

    def with_defaults(self, config: ConversionConfig) -> "ConversionRequest":
        """Fill unset per-format options from configuration."""
        update: dict[str, Any] = {}
        if self.format == "jpeg" and self.quality is None:
            update["quality"] = config.jpeg_quality
        elif self.format == "webp" and self.quality is None and not self.lossless:
            update["quality"] = config.webp_quality
        elif self.format == "avif" and self.quality is None and not self.lossless:
            update["quality"] = config.avif_quality
        elif self.format == "png" and self.compression_level is None:
            update["compression_level"] = config.png_compression_level
        elif self.format == "tiff" and self.tiff_compression is None:
            update["tiff_compression"] = config.tiff_compression
        return self.model_copy(update=update) if update else self

    def target_size(self, original: Dimensions) -> tuple[int, int]:
        """Output size for a source of ``original`` dimensions."""
        return compute_target_size(original, self.width, self.height)


# Validation errors are located by alias (camelCase); report attribute names
_FIELD_BY_ALIAS = {
    info.alias: name for name, info in ConversionRequest.model_fields.items() if info.alias
}


def _error_loc(detail: Mapping[str, Any]) -> str:
    return ".".join(
        _FIELD_BY_ALIAS.get(str(part), str(part)) for part in detail.get("loc", ())
    )


def _error_fields(error: ValidationError) -> list[str]:
    return [_error_loc(detail) or "__root__" for detail in error.errors()]


def _error_message(error: ValidationError) -> str:
    parts = []
    for detail in error.errors():
        loc = _error_loc(detail)
        msg = detail.get("msg", "invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "Invalid conversion options: " + "; ".join(parts)


def build_request(
    options: "ConversionRequest | Mapping[str, Any] | None" = None, **overrides: Any
) -> ConversionRequest:
    """Build a validated request from a mapping, an existing request, or keywords.

    Args:
        options: Existing request or mapping (snake_case or camelCase keys)
        **overrides: Individual fields that take precedence over ``options``

    Returns:
        A validated, frozen ConversionRequest

    Raises:
        InvalidOptionError: If any option is unknown, malformed or out of range
    """
    if isinstance(options, ConversionRequest):
        if not overrides:
            return options
        data: dict[str, Any] = options.model_dump(exclude_none=True)
    elif options is None:
        data = {}
    elif isinstance(options, Mapping):
        data = dict(options)
    else:
        raise InvalidOptionError(
            f"Conversion options must be a mapping, got {type(options).__name__}"
        )
    data.update(overrides)

    try:
        return ConversionRequest.model_validate(data)
    except ValidationError as e:
        raise InvalidOptionError(_error_message(e), fields=_error_fields(e)) from e


def compute_target_size(
    original: Dimensions, width: int | None = None, height: int | None = None
) -> tuple[int, int]:
    """Resolve the output size.

    Only one side given: the other follows the original aspect ratio.
    Both given: used exactly, even if that distorts the image.
    Neither: the original size.
    """
    if width is not None and height is not None:
        return (width, height)
    if width is not None:
        return (width, max(1, round(width * original.height / original.width)))
    if height is not None:
        return (max(1, round(height * original.width / original.height)), height)
    return original.as_tuple()


def fit_within(original: Dimensions, max_size: int) -> tuple[int, int]:
    """Largest size with the original aspect ratio whose longest side is ``max_size``.

    Never upscales.
    """
    longest = max(original.width, original.height)
    if longest <= max_size:
        return original.as_tuple()
    if original.width >= original.height:
        return compute_target_size(original, width=max_size)
    return compute_target_size(original, height=max_size)


@dataclass(frozen=True)
class SizeSpec:
    """A named output size for multi-size generation."""

    name: str
    width: int | None = None
    height: int | None = None
    quality: int | None = None
    effort: int | None = None
    format: str = "jpeg"

    def to_request(self) -> ConversionRequest:
        fields = {
            "format": self.format,
            "width": self.width,
            "height": self.height,
            "quality": self.quality,
            "effort": self.effort,
        }
        return build_request({key: value for key, value in fields.items() if value is not None})
