"""Process-wide capability table.

Built once on first query and never mutated afterwards. Everything is
exposed through pure lookup functions.
"""

from dataclasses import dataclass
from functools import lru_cache
from types import MappingProxyType

import PIL
from PIL import Image

from rawkit import __version__
from rawkit.config.constants import FORMAT_ALIASES, OUTPUT_FORMATS
from rawkit.engine.pillow import codec_available

# RAW container extensions and the vendor that produces them
RAW_VENDORS = MappingProxyType(
    {
        ".3fr": "Hasselblad",
        ".arw": "Sony",
        ".cr2": "Canon",
        ".cr3": "Canon",
        ".crw": "Canon",
        ".dcr": "Kodak",
        ".dng": "Adobe",
        ".erf": "Epson",
        ".iiq": "Phase One",
        ".kdc": "Kodak",
        ".mef": "Mamiya",
        ".mos": "Leaf",
        ".mrw": "Minolta",
        ".nef": "Nikon",
        ".nrw": "Nikon",
        ".orf": "Olympus",
        ".pef": "Pentax",
        ".raf": "Fujifilm",
        ".raw": "Panasonic",
        ".rw2": "Panasonic",
        ".rwl": "Leica",
        ".sr2": "Sony",
        ".srf": "Sony",
        ".srw": "Samsung",
        ".x3f": "Sigma",
    }
)


@dataclass(frozen=True)
class Capabilities:
    """Immutable snapshot of what this build can read and write."""

    version: str
    pillow_version: str
    input_extensions: frozenset[str]
    output_formats: tuple[str, ...]
    available_formats: frozenset[str]
    raw_vendors: MappingProxyType


@lru_cache(maxsize=1)
def get_capabilities() -> Capabilities:
    """Return the capability table, building it on first use."""
    Image.init()
    extensions = {ext.lower() for ext in Image.registered_extensions()}
    return Capabilities(
        version=__version__,
        pillow_version=PIL.__version__,
        input_extensions=frozenset(extensions),
        output_formats=OUTPUT_FORMATS,
        available_formats=frozenset(fmt for fmt in OUTPUT_FORMATS if codec_available(fmt)),
        raw_vendors=RAW_VENDORS,
    )


def normalize_format(name: str) -> str:
    """Map a user-facing format name (``JPG``, ``tif``) onto its canonical form."""
    lowered = name.strip().lower().lstrip(".")
    return FORMAT_ALIASES.get(lowered, lowered)


def supported_output_formats() -> tuple[str, ...]:
    return get_capabilities().output_formats


def is_format_available(name: str) -> bool:
    """Check whether this build can encode ``name``."""
    return normalize_format(name) in get_capabilities().available_formats


def is_supported_input(extension: str) -> bool:
    """Check whether a file extension can be loaded."""
    ext = extension.lower() if extension.startswith(".") else f".{extension.lower()}"
    return ext in get_capabilities().input_extensions


def raw_vendor_for(extension: str) -> str | None:
    """Return the camera vendor behind a RAW extension, if known."""
    ext = extension.lower() if extension.startswith(".") else f".{extension.lower()}"
    return RAW_VENDORS.get(ext)
