"""Tests for exceptions module."""

from pathlib import Path


class TestExceptions:
    """Tests for custom exceptions."""

    def test_rawkit_error(self):
        """Test base RawkitError."""
        from rawkit.exceptions import RawkitError

        error = RawkitError("Test error")
        assert str(error) == "Test error"

    def test_load_error(self):
        from rawkit.exceptions import LoadError

        cause = OSError("permission denied")
        error = LoadError(Path("/photos/IMG_0001.cr2"), "unreadable", cause=cause)

        assert "IMG_0001.cr2" in str(error)
        assert "unreadable" in str(error)
        assert error.cause is cause

    def test_lifecycle_errors(self):
        from rawkit.exceptions import AlreadyClosedError, NotLoadedError

        assert str(NotLoadedError("convert")) == "Cannot convert: no source loaded"
        assert str(AlreadyClosedError("process")) == "Cannot process: session is closed"

    def test_decode_error(self):
        from rawkit.exceptions import DecodeError

        error = DecodeError("a.nef", "truncated")

        assert error.source == "a.nef"
        assert error.cause is None

    def test_encode_error(self):
        from rawkit.exceptions import EncodeError

        error = EncodeError("avif", "format unsupported on this platform")

        assert error.format == "avif"
        assert str(error) == "Encoding to avif failed: format unsupported on this platform"

    def test_invalid_option_error(self):
        from rawkit.exceptions import InvalidOptionError

        assert InvalidOptionError("bad").fields == []
        assert InvalidOptionError("bad", fields=["quality"]).fields == ["quality"]

    def test_batch_setup_error(self):
        from rawkit.exceptions import BatchSetupError

        error = BatchSetupError(Path("/out"), PermissionError("denied"))

        assert error.output_dir == Path("/out")
        assert "denied" in str(error)

    def test_hierarchy(self):
        from rawkit import exceptions

        for name in (
            "LoadError",
            "NotLoadedError",
            "AlreadyClosedError",
            "DecodeError",
            "EncodeError",
            "InvalidOptionError",
            "BatchSetupError",
            "ConfigurationError",
        ):
            assert issubclass(getattr(exceptions, name), exceptions.RawkitError)
