"""Constants for rawkit."""

from rawkit import __version__

# Application constants
APP_NAME = "rawkit"
APP_VERSION = __version__

# Default paths
DEFAULT_CONFIG_FILE = "rawkit.yaml"

# Output formats and their file extensions
OUTPUT_FORMATS = ("jpeg", "png", "webp", "avif", "tiff", "ppm")

FORMAT_ALIASES = {
    "jpg": "jpeg",
    "tif": "tiff",
    "pnm": "ppm",
}

FORMAT_EXTENSIONS = {
    "jpeg": "jpg",
    "png": "png",
    "webp": "webp",
    "avif": "avif",
    "tiff": "tiff",
    "ppm": "ppm",
}

# Pillow save() format names
PILLOW_FORMATS = {
    "jpeg": "JPEG",
    "png": "PNG",
    "webp": "WEBP",
    "avif": "AVIF",
    "tiff": "TIFF",
    "ppm": "PPM",
}

# Options each output format accepts (width/height apply to all)
FORMAT_OPTIONS = {
    "jpeg": frozenset({"quality", "progressive", "chroma_subsampling", "effort"}),
    "png": frozenset({"compression_level"}),
    "webp": frozenset({"quality", "lossless", "effort"}),
    "avif": frozenset({"quality", "lossless", "effort", "chroma_subsampling"}),
    "tiff": frozenset({"quality", "tiff_compression"}),
    "ppm": frozenset(),
}

CHROMA_SUBSAMPLING = ("4:4:4", "4:2:2", "4:2:0")
TIFF_COMPRESSIONS = ("none", "lzw", "jpeg", "deflate", "packbits")

# Optimizer thresholds (megapixels)
HIGH_RESOLUTION_MP = 24.0
MEDIUM_RESOLUTION_MP = 8.0

# Conversion defaults
DEFAULT_FORMAT = "jpeg"
DEFAULT_JPEG_QUALITY = 85
DEFAULT_WEBP_QUALITY = 80
DEFAULT_AVIF_QUALITY = 60
DEFAULT_PNG_COMPRESSION_LEVEL = 6
DEFAULT_TIFF_COMPRESSION = "lzw"
DEFAULT_THUMBNAIL_SIZE = 300
DEFAULT_THUMBNAIL_QUALITY = 85

# Concurrency defaults
DEFAULT_MAX_CONCURRENCY = 3

# Decoded rasters above this pixel count are refused by the Pillow decoder
DEFAULT_MAX_PIXELS = 250_000_000
