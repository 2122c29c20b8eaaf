"""Pytest configuration and fixtures."""

import tempfile
import threading
import time
from contextlib import contextmanager
from pathlib import Path

import pytest
from PIL import ExifTags, Image

from rawkit.config.settings import RawkitSettings, get_settings
from rawkit.engine.base import DecodedImage, EncodedImage, ImageMetadata
from rawkit.exceptions import EncodeError, LoadError


class ActivityMonitor:
    """Counts decode/encode calls that are running at the same time."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.active = 0
        self.max_active = 0

    @contextmanager
    def track(self):
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            yield
        finally:
            with self._lock:
                self.active -= 1


class StubDecoder:
    """Decoder that fabricates a raster of fixed size and records every call."""

    def __init__(
        self,
        width: int = 6000,
        height: int = 4000,
        delay: float = 0.0,
        fail_times: int = 0,
        monitor: ActivityMonitor | None = None,
    ) -> None:
        self.width = width
        self.height = height
        self.delay = delay
        self.fail_times = fail_times
        self.monitor = monitor or ActivityMonitor()
        self._lock = threading.Lock()
        self.decode_calls = 0
        self.loaded: list[str] = []
        self.released: list[str] = []

    def load(self, source):
        label = "<buffer>" if isinstance(source, (bytes, bytearray)) else str(source)
        if "corrupt" in label:
            raise LoadError(label, "unsupported or corrupt image file")
        self.loaded.append(label)
        return {"source": label}

    def read_metadata(self, handle):
        return ImageMetadata(width=self.width, height=self.height, format="STUB")

    def decode(self, handle):
        with self.monitor.track():
            with self._lock:
                self.decode_calls += 1
                attempt = self.decode_calls
            if self.delay:
                time.sleep(self.delay)
            if attempt <= self.fail_times:
                raise RuntimeError("sensor data truncated")
        return DecodedImage(
            raster=("raster", handle["source"]), width=self.width, height=self.height
        )

    def release(self, handle):
        self.released.append(handle["source"])


class StubEncoder:
    """Encoder that returns deterministic bytes and honors the requested size."""

    def __init__(
        self,
        delay: float = 0.0,
        unavailable: tuple[str, ...] = (),
        monitor: ActivityMonitor | None = None,
    ) -> None:
        self.delay = delay
        self.unavailable = unavailable
        self.monitor = monitor or ActivityMonitor()
        self.calls: list[tuple[str, dict, tuple[int, int] | None]] = []

    def supports(self, format):
        return format not in self.unavailable

    def encode(self, raster, format, options, size=None):
        if format in self.unavailable:
            raise EncodeError(format, "format unsupported on this platform")
        with self.monitor.track():
            self.calls.append((format, dict(options), size))
            if self.delay:
                time.sleep(self.delay)
        width, height = size if size is not None else (6000, 4000)
        quality = options.get("quality") or 50
        return EncodedImage(data=b"\x00" * (1000 + quality * 10), width=width, height=height)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def settings(tmp_path, monkeypatch) -> RawkitSettings:
    """Default settings, isolated from any rawkit.yaml in the working directory."""
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield RawkitSettings()
    get_settings.cache_clear()


@pytest.fixture
def monitor() -> ActivityMonitor:
    return ActivityMonitor()


@pytest.fixture
def decoder(monitor) -> StubDecoder:
    return StubDecoder(monitor=monitor)


@pytest.fixture
def encoder(monitor) -> StubEncoder:
    return StubEncoder(monitor=monitor)


@pytest.fixture
def raw_file(temp_dir: Path) -> Path:
    """A placeholder RAW source; the stub decoder never reads its contents."""
    file_path = temp_dir / "IMG_0001.cr2"
    file_path.write_bytes(b"\x00" * 500_000)
    return file_path


@pytest.fixture
def make_raw_files(temp_dir: Path):
    """Factory for several placeholder RAW sources."""

    def _make(count: int, prefix: str = "IMG") -> list[Path]:
        paths = []
        for i in range(count):
            path = temp_dir / f"{prefix}_{i:04d}.nef"
            path.write_bytes(b"\x00" * 200_000)
            paths.append(path)
        return paths

    return _make


@pytest.fixture
def sample_jpeg(temp_dir: Path) -> Path:
    """A real 600x400 JPEG with camera EXIF tags."""
    image = Image.new("RGB", (600, 400), color=(200, 120, 40))
    exif = image.getexif()
    exif[ExifTags.Base.Make] = "Canon"
    exif[ExifTags.Base.Model] = "EOS R5"
    file_path = temp_dir / "sample.jpg"
    image.save(file_path, format="JPEG", quality=95, exif=exif)
    return file_path


@pytest.fixture
def rotated_jpeg(temp_dir: Path) -> Path:
    """A 40x20 JPEG whose EXIF orientation says 'rotate 90 degrees clockwise'."""
    image = Image.new("RGB", (40, 20), color=(10, 200, 10))
    exif = image.getexif()
    exif[ExifTags.Base.Orientation] = 6
    file_path = temp_dir / "rotated.jpg"
    image.save(file_path, format="JPEG", exif=exif)
    return file_path


@pytest.fixture
def transparent_png(temp_dir: Path) -> Path:
    """A 64x64 RGBA PNG with a transparent half."""
    image = Image.new("RGBA", (64, 64), color=(255, 0, 0, 255))
    image.paste((0, 0, 0, 0), (0, 0, 32, 64))
    file_path = temp_dir / "transparent.png"
    image.save(file_path, format="PNG")
    return file_path


@pytest.fixture
def corrupt_file(temp_dir: Path) -> Path:
    """A file with an image extension but no image inside."""
    file_path = temp_dir / "broken.jpg"
    file_path.write_bytes(b"this is not an image at all")
    return file_path


@pytest.fixture
def make_decoder(monitor):
    """Factory for stub decoders sharing the test's activity monitor."""

    def _make(**kwargs) -> StubDecoder:
        return StubDecoder(monitor=monitor, **kwargs)

    return _make


@pytest.fixture
def make_encoder(monitor):
    """Factory for stub encoders sharing the test's activity monitor."""

    def _make(**kwargs) -> StubEncoder:
        return StubEncoder(monitor=monitor, **kwargs)

    return _make
