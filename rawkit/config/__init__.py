"""Configuration module for rawkit."""

from rawkit.config.settings import (
    ConcurrencyConfig,
    ConversionConfig,
    OutputConfig,
    RawkitSettings,
    get_settings,
    reload_settings,
)

__all__ = [
    "ConcurrencyConfig",
    "ConversionConfig",
    "OutputConfig",
    "RawkitSettings",
    "get_settings",
    "reload_settings",
]
