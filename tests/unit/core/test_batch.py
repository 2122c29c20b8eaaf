"""Tests for the batch scheduler."""

import pytest

from rawkit.core.batch import BatchJob, BatchScheduler
from rawkit.exceptions import BatchSetupError, InvalidOptionError


class TestBatchScheduler:
    """Tests for BatchScheduler.run."""

    @pytest.mark.asyncio
    async def test_all_inputs_succeed(self, decoder, encoder, settings, make_raw_files, temp_dir):
        """Three valid inputs with a limit of three all succeed."""
        inputs = make_raw_files(3)
        scheduler = BatchScheduler(settings, decoder, encoder)

        result = await scheduler.run(
            BatchJob(inputs=inputs, output_dir=temp_dir / "out", concurrency_limit=3)
        )

        assert len(result.successful) == 3
        assert len(result.failed) == 0
        assert result.summary.total == 3
        assert result.summary.processed == 3
        assert result.summary.success_rate == 100.0
        for entry in result.successful:
            assert entry.output.exists()
            assert entry.output.suffix == ".jpg"
        assert sorted(decoder.released) == sorted(str(path) for path in inputs)

    @pytest.mark.asyncio
    async def test_failures_are_accounted(
        self, decoder, encoder, settings, make_raw_files, temp_dir
    ):
        """Invalid inputs become failed entries without stopping the rest."""
        valid = make_raw_files(4)
        corrupt = temp_dir / "corrupt_0001.nef"
        corrupt.write_bytes(b"junk")
        missing = temp_dir / "missing.nef"
        inputs = [valid[0], corrupt, valid[1], missing, valid[2], valid[3]]

        result = await BatchScheduler(settings, decoder, encoder).run(
            BatchJob(inputs=inputs, output_dir=temp_dir / "out", concurrency_limit=2)
        )

        assert result.summary.total == 6
        assert result.summary.errors == 2
        assert result.summary.processed == 4
        assert len(result.successful) + len(result.failed) == 6
        assert {entry.input for entry in result.failed} == {str(corrupt), str(missing)}
        assert {entry.error_type for entry in result.failed} == {"LoadError"}

    @pytest.mark.asyncio
    async def test_all_inputs_fail(self, decoder, encoder, settings, temp_dir):
        """run() still resolves when every input fails."""
        inputs = [temp_dir / f"missing_{i}.cr2" for i in range(3)]

        result = await BatchScheduler(settings, decoder, encoder).run(
            BatchJob(inputs=inputs, output_dir=temp_dir / "out")
        )

        assert result.successful == []
        assert len(result.failed) == 3
        assert result.summary.average_compression_ratio == 0.0
        assert result.summary.average_processing_time_per_file == 0.0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [1, 2, 3])
    async def test_concurrency_bound(
        self, make_decoder, make_encoder, monitor, settings, make_raw_files, temp_dir, limit
    ):
        """Active decode/encode calls never exceed the concurrency limit."""
        decoder = make_decoder(delay=0.02)
        encoder = make_encoder(delay=0.02)

        result = await BatchScheduler(settings, decoder, encoder).run(
            BatchJob(
                inputs=make_raw_files(8),
                output_dir=temp_dir / "out",
                concurrency_limit=limit,
            )
        )

        assert len(result.successful) == 8
        assert 1 <= monitor.max_active <= limit

    @pytest.mark.asyncio
    async def test_summary_aggregates(self, decoder, encoder, settings, make_raw_files, temp_dir):
        """Summary sums and averages cover successful conversions only."""
        inputs = [*make_raw_files(3), temp_dir / "missing.nef"]

        result = await BatchScheduler(settings, decoder, encoder).run(
            BatchJob(inputs=inputs, output_dir=temp_dir / "out", options={"quality": 50})
        )

        summary = result.summary
        ratios = [entry.result.compression_ratio for entry in result.successful]
        times = [entry.result.processing_time_ms for entry in result.successful]
        assert summary.total_original_bytes == 3 * 200_000
        assert summary.total_compressed_bytes == 3 * 1500
        assert summary.average_compression_ratio == round(sum(ratios) / 3, 2)
        assert summary.average_processing_time_per_file == pytest.approx(
            sum(times) / 3, abs=0.01
        )
        assert summary.errors == 1

    @pytest.mark.asyncio
    async def test_duplicate_stems_get_distinct_outputs(
        self, decoder, encoder, settings, temp_dir
    ):
        """Inputs sharing a stem are written to different files."""
        first = temp_dir / "a" / "IMG_0001.cr2"
        second = temp_dir / "b" / "IMG_0001.nef"
        for path in (first, second):
            path.parent.mkdir()
            path.write_bytes(b"\x00" * 1000)

        result = await BatchScheduler(settings, decoder, encoder).run(
            BatchJob(inputs=[first, second], output_dir=temp_dir / "out")
        )

        outputs = {entry.output.name for entry in result.successful}
        assert outputs == {"IMG_0001.jpg", "IMG_0001_1.jpg"}

    @pytest.mark.asyncio
    async def test_rename_on_conflict(self, decoder, encoder, settings, make_raw_files, temp_dir):
        """With on_conflict=rename existing outputs are kept."""
        settings.output.on_conflict = "rename"
        inputs = make_raw_files(1)
        out_dir = temp_dir / "out"
        out_dir.mkdir()
        (out_dir / "IMG_0000.jpg").write_bytes(b"keep me")

        result = await BatchScheduler(settings, decoder, encoder).run(
            BatchJob(inputs=inputs, output_dir=out_dir)
        )

        assert result.successful[0].output == out_dir / "IMG_0000_1.jpg"
        assert (out_dir / "IMG_0000.jpg").read_bytes() == b"keep me"

    @pytest.mark.asyncio
    async def test_output_format_from_options(
        self, decoder, encoder, settings, make_raw_files, temp_dir
    ):
        result = await BatchScheduler(settings, decoder, encoder).run(
            BatchJob(
                inputs=make_raw_files(2),
                output_dir=temp_dir / "out",
                options={"format": "webp", "width": 600},
            )
        )

        assert all(entry.output.suffix == ".webp" for entry in result.successful)
        assert all(
            entry.result.output_dimensions.as_tuple() == (600, 400) for entry in result.successful
        )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [1, 2])
    async def test_item_timeout_keeps_concurrency_bound(
        self, make_decoder, encoder, monitor, settings, make_raw_files, temp_dir, limit
    ):
        """Timed-out inputs become failures and their decodes finish before the slot is reused."""
        decoder = make_decoder(delay=0.2)
        inputs = make_raw_files(4)

        result = await BatchScheduler(settings, decoder, encoder).run(
            BatchJob(
                inputs=inputs,
                output_dir=temp_dir / "out",
                concurrency_limit=limit,
                item_timeout=0.05,
            )
        )

        assert len(result.failed) == 4
        assert {entry.error_type for entry in result.failed} == {"TimeoutError"}
        assert all("timed out after 0.05s" in entry.error for entry in result.failed)
        assert 1 <= monitor.max_active <= limit
        assert monitor.active == 0
        assert sorted(decoder.released) == sorted(str(path) for path in inputs)

    @pytest.mark.asyncio
    async def test_processing_time_includes_decode(
        self, make_decoder, encoder, settings, make_raw_files, temp_dir
    ):
        """Per-file time covers the whole load, decode and encode of each input."""
        decoder = make_decoder(delay=0.1)

        result = await BatchScheduler(settings, decoder, encoder).run(
            BatchJob(inputs=make_raw_files(2), output_dir=temp_dir / "out", concurrency_limit=1)
        )

        assert result.summary.average_processing_time_per_file >= 100
        for entry in result.successful:
            assert entry.result.processing_time_ms >= 100
            assert entry.result.from_cache is False
            assert entry.result.throughput_mbps == pytest.approx(
                (200_000 / (1024 * 1024)) / (entry.result.processing_time_ms / 1000), abs=0.01
            )


class TestBatchSetup:
    """Tests for setup-level failures."""

    @pytest.mark.asyncio
    async def test_output_dir_not_creatable(
        self, decoder, encoder, settings, make_raw_files, temp_dir
    ):
        """An output location that cannot be created fails the whole call."""
        blocker = temp_dir / "blocker"
        blocker.write_text("not a directory")

        with pytest.raises(BatchSetupError):
            await BatchScheduler(settings, decoder, encoder).run(
                BatchJob(inputs=make_raw_files(2), output_dir=blocker / "out")
            )

        assert decoder.loaded == []

    @pytest.mark.asyncio
    async def test_invalid_options(self, decoder, encoder, settings, make_raw_files, temp_dir):
        with pytest.raises(InvalidOptionError):
            await BatchScheduler(settings, decoder, encoder).run(
                BatchJob(
                    inputs=make_raw_files(1),
                    output_dir=temp_dir / "out",
                    options={"format": "png", "quality": 10},
                )
            )

    @pytest.mark.asyncio
    async def test_invalid_concurrency_limit(
        self, decoder, encoder, settings, make_raw_files, temp_dir
    ):
        with pytest.raises(InvalidOptionError):
            await BatchScheduler(settings, decoder, encoder).run(
                BatchJob(inputs=make_raw_files(1), output_dir=temp_dir / "out", concurrency_limit=0)
            )

    @pytest.mark.asyncio
    async def test_batch_timeout(self, make_decoder, encoder, settings, make_raw_files, temp_dir):
        """A whole-batch deadline raises TimeoutError once the started decodes are released."""
        decoder = make_decoder(delay=0.3)
        inputs = make_raw_files(2)

        with pytest.raises(TimeoutError, match="Batch"):
            await BatchScheduler(settings, decoder, encoder).run(
                BatchJob(inputs=inputs, output_dir=temp_dir / "out"),
                timeout=0.05,
            )

        assert decoder.monitor.active == 0
        assert sorted(decoder.released) == sorted(str(path) for path in inputs)

    @pytest.mark.asyncio
    async def test_empty_batch(self, decoder, encoder, settings, temp_dir):
        result = await BatchScheduler(settings, decoder, encoder).run(
            BatchJob(inputs=[], output_dir=temp_dir / "out")
        )

        assert result.summary.total == 0
        assert result.summary.success_rate == 0.0
