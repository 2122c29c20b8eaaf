"""Configuration settings using pydantic-settings."""

from functools import lru_cache
from typing import Literal

from pydantic import BaseModel, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict, YamlConfigSettingsSource

from rawkit.config.constants import (
    DEFAULT_AVIF_QUALITY,
    DEFAULT_CONFIG_FILE,
    DEFAULT_FORMAT,
    DEFAULT_JPEG_QUALITY,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_MAX_PIXELS,
    DEFAULT_PNG_COMPRESSION_LEVEL,
    DEFAULT_THUMBNAIL_QUALITY,
    DEFAULT_THUMBNAIL_SIZE,
    DEFAULT_TIFF_COMPRESSION,
    DEFAULT_WEBP_QUALITY,
)
from rawkit.exceptions import ConfigurationError


class ConversionConfig(BaseModel):
    """Per-format defaults applied when a request leaves an option unset."""

    default_format: Literal["jpeg", "png", "webp", "avif", "tiff", "ppm"] = DEFAULT_FORMAT
    jpeg_quality: int = Field(default=DEFAULT_JPEG_QUALITY, ge=1, le=100)
    webp_quality: int = Field(default=DEFAULT_WEBP_QUALITY, ge=1, le=100)
    avif_quality: int = Field(default=DEFAULT_AVIF_QUALITY, ge=1, le=100)
    png_compression_level: int = Field(default=DEFAULT_PNG_COMPRESSION_LEVEL, ge=0, le=9)
    tiff_compression: Literal["none", "lzw", "jpeg", "deflate", "packbits"] = (
        DEFAULT_TIFF_COMPRESSION
    )
    thumbnail_size: int = Field(default=DEFAULT_THUMBNAIL_SIZE, ge=1)
    thumbnail_quality: int = Field(default=DEFAULT_THUMBNAIL_QUALITY, ge=1, le=100)
    max_pixels: int = Field(default=DEFAULT_MAX_PIXELS, ge=1)


class ConcurrencyConfig(BaseModel):
    """Batch concurrency configuration."""

    max_concurrency: int = Field(default=DEFAULT_MAX_CONCURRENCY, ge=1)
    item_timeout: float | None = Field(default=None, gt=0)  # Seconds per input, None = no limit


class OutputConfig(BaseModel):
    """Output configuration."""

    on_conflict: Literal["overwrite", "rename"] = "overwrite"


class RawkitSettings(BaseSettings):
    """Main configuration class for rawkit."""

    model_config = SettingsConfigDict(
        env_prefix="RAWKIT_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        """Customize settings sources to include YAML file."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=DEFAULT_CONFIG_FILE),
            file_secret_settings,
        )

    # Sub-configurations
    conversion: ConversionConfig = Field(default_factory=ConversionConfig)
    concurrency: ConcurrencyConfig = Field(default_factory=ConcurrencyConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    # Global settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


@lru_cache
def get_settings() -> RawkitSettings:
    """Get cached settings instance.

    Raises:
        ConfigurationError: If the environment or rawkit.yaml holds invalid values
    """
    try:
        return RawkitSettings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid rawkit settings: {e}") from e


def reload_settings() -> RawkitSettings:
    """Force reload settings (clear cache)."""
    get_settings.cache_clear()
    return get_settings()
