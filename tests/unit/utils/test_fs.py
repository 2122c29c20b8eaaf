"""Tests for file system utilities."""

import pytest

from rawkit.utils.fs import (
    atomic_write,
    ensure_directory,
    format_size,
    get_unique_path,
    write_bytes_atomic,
)


class TestEnsureDirectory:
    def test_creates_nested(self, temp_dir):
        path = ensure_directory(temp_dir / "a" / "b")

        assert path.is_dir()

    def test_existing_ok(self, temp_dir):
        assert ensure_directory(temp_dir) == temp_dir


class TestGetUniquePath:
    """Tests for get_unique_path."""

    def test_free_path_unchanged(self, temp_dir):
        path = temp_dir / "out.jpg"

        assert get_unique_path(path) == path

    def test_existing_gets_counter(self, temp_dir):
        (temp_dir / "out.jpg").write_bytes(b"")
        (temp_dir / "out_1.jpg").write_bytes(b"")

        assert get_unique_path(temp_dir / "out.jpg") == temp_dir / "out_2.jpg"

    def test_reserved_paths_skipped(self, temp_dir):
        path = temp_dir / "out.jpg"

        assert get_unique_path(path, reserved={path}) == temp_dir / "out_1.jpg"


class TestAtomicWrite:
    """Tests for atomic writes."""

    def test_write_bytes(self, temp_dir):
        target = temp_dir / "nested" / "file.bin"

        assert write_bytes_atomic(target, b"\x00\x01") == target
        assert target.read_bytes() == b"\x00\x01"
        assert [p.name for p in target.parent.iterdir()] == ["file.bin"]

    def test_failure_leaves_no_file(self, temp_dir):
        target = temp_dir / "file.bin"

        with pytest.raises(RuntimeError):
            with atomic_write(target) as f:
                f.write(b"partial")
                raise RuntimeError("interrupted")

        assert list(temp_dir.iterdir()) == []

    def test_replaces_existing(self, temp_dir):
        target = temp_dir / "file.bin"
        target.write_bytes(b"old")

        write_bytes_atomic(target, b"new")

        assert target.read_bytes() == b"new"


class TestFormatSize:
    @pytest.mark.parametrize(
        ("size", "expected"),
        [(0, "0.0 B"), (1023, "1023.0 B"), (1024, "1.0 KB"), (5 * 1024 * 1024, "5.0 MB")],
    )
    def test_format_size(self, size, expected):
        assert format_size(size) == expected
