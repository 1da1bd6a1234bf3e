"""Tests for single-job processing and the asyncio executor."""

import asyncio
import tempfile
from pathlib import Path
from typing import List, Optional

import pytest
from PIL import Image

from imgpipel.core.exceptions import JobError, ToolNotFoundError
from imgpipel.core.models import (
    ProcessJob,
    ProcessResult,
    Target,
    ToolConfig,
)
from imgpipel.processors import (
    execute_jobs,
    process_job,
    resize_geometry,
    run_job,
    sort_results,
)
from imgpipel.processors.common import partial_path
from imgpipel.testing.fakes import FakeLogger, FakeToolRunner, create_test_image

TOOLS = ToolConfig()


def make_job(
    tmp_path: Path, name: str = "photo.jpg", target: Optional[Target] = None, **kwargs
) -> ProcessJob:
    source = tmp_path / "in" / name
    if not source.exists():
        source.parent.mkdir(parents=True, exist_ok=True)
        source.write_bytes(create_test_image(300, 200))
    target = target or Target(name="thumb", quality=1.0, max_width=100, max_height=100)
    return ProcessJob(
        input_path=source,
        output_path=tmp_path / "out" / f"{Path(name).stem}_{target.name}.jpg",
        target=target,
        **kwargs,
    )


class TestResizeGeometry:
    """Tests for resize_geometry."""

    @pytest.mark.parametrize(
        "max_width,max_height,expected",
        [
            (100, 100, "100x100>"),
            (640, None, "640>"),
            (None, 480, "x480>"),
            (None, None, None),
        ],
    )
    def test_resize_geometry(self, max_width, max_height, expected):
        target = Target(name="t", quality=1.0, max_width=max_width, max_height=max_height)

        assert resize_geometry(target) == expected


class TestProcessJob:
    """Tests for process_job."""

    def test_process_job_resizes_and_encodes(self, tmp_path: Path):
        """Test the resize -> encode -> strip sequence and its output."""
        job = make_job(tmp_path)
        runner = FakeToolRunner()

        asyncio.run(process_job(job, runner, TOOLS))

        assert [call[0] for call in runner.calls] == ["magick", "cjpegli", "exiftool"]
        assert runner.calls[0][2:4] == ["-resize", "100x100>"]
        assert "--distance=1.0" in runner.calls[1]
        assert "--chroma_subsampling=420" in runner.calls[1]
        assert "--progressive_level=2" in runner.calls[1]
        assert "-all=" in runner.calls[2]
        with Image.open(job.output_path) as image:
            assert image.format == "JPEG"
            assert max(image.size) <= 100

    def test_process_job_without_bounds_skips_resize(self, tmp_path: Path):
        """Test that an unbounded target goes straight to the encoder."""
        job = make_job(tmp_path, target=Target(name="full", quality=2.5))
        runner = FakeToolRunner()

        asyncio.run(process_job(job, runner, TOOLS))

        assert runner.calls_to("magick") == []
        assert runner.calls[0][1] == str(job.input_path)
        assert "--distance=2.5" in runner.calls[0]
        with Image.open(job.output_path) as image:
            assert image.size == (300, 200)

    def test_process_job_preserves_metadata(self, tmp_path: Path):
        """Test that metadata is copied from the source when asked to."""
        job = make_job(tmp_path, preserve_metadata=True)
        runner = FakeToolRunner()

        asyncio.run(process_job(job, runner, TOOLS))

        copy = runner.calls_to("exiftool")[0]
        assert "-TagsFromFile" in copy
        assert str(job.input_path) in copy

    def test_process_job_failure_leaves_no_output(self, tmp_path: Path):
        """Test that a failed encode leaves neither output nor staging file."""
        job = make_job(tmp_path)
        runner = FakeToolRunner()
        runner.fail_on("--distance", "Unsupported colour space")

        with pytest.raises(JobError) as exc_info:
            asyncio.run(process_job(job, runner, TOOLS))

        assert "thumb" in str(exc_info.value)
        assert "Unsupported colour space" in str(exc_info.value)
        assert not job.output_path.exists()
        assert not partial_path(job.output_path).exists()

    def test_process_job_cleans_resize_temp_file(self, tmp_path: Path, monkeypatch):
        """Test that the intermediate resize file is removed after the job."""
        scratch = tmp_path / "scratch"
        scratch.mkdir()
        monkeypatch.setattr(tempfile, "tempdir", str(scratch))
        job = make_job(tmp_path)

        asyncio.run(process_job(job, FakeToolRunner(), TOOLS))

        assert list(scratch.iterdir()) == []

    def test_process_job_missing_tool_propagates(self, tmp_path: Path):
        """Test that a missing program is not turned into a job failure."""
        job = make_job(tmp_path)
        runner = FakeToolRunner()
        runner.missing.add("magick")

        with pytest.raises(ToolNotFoundError):
            asyncio.run(process_job(job, runner, TOOLS))


class TestRunJob:
    """Tests for run_job."""

    def test_run_job_reports_sizes(self, tmp_path: Path):
        """Test that a processed job reports both file sizes."""
        job = make_job(tmp_path)

        result = asyncio.run(run_job(job, FakeToolRunner(), TOOLS))

        assert result.success
        assert not result.skipped
        assert result.input_size_bytes == job.input_path.stat().st_size
        assert result.output_size_bytes == job.output_path.stat().st_size
        assert result.compression_ratio == pytest.approx(
            result.output_size_bytes / result.input_size_bytes
        )

    def test_run_job_skips_existing_output(self, tmp_path: Path):
        """Test that an existing output is left alone and reported as skipped."""
        job = make_job(tmp_path)
        job.output_path.parent.mkdir(parents=True)
        job.output_path.write_bytes(b"already here")
        runner = FakeToolRunner()

        result = asyncio.run(run_job(job, runner, TOOLS))

        assert result.skipped
        assert runner.calls == []
        assert job.output_path.read_bytes() == b"already here"
        assert result.output_size_bytes == len(b"already here")

    def test_run_job_reprocess_existing(self, tmp_path: Path):
        """Test that reprocessing overwrites an existing output."""
        job = make_job(tmp_path)
        job.output_path.parent.mkdir(parents=True)
        job.output_path.write_bytes(b"stale")

        result = asyncio.run(
            run_job(job, FakeToolRunner(), TOOLS, reprocess_existing=True)
        )

        assert not result.skipped
        assert job.output_path.read_bytes() != b"stale"


class TestExecuteJobs:
    """Tests for execute_jobs."""

    def make_jobs(self, tmp_path: Path, count: int) -> List[ProcessJob]:
        return [make_job(tmp_path, f"photo{index}.jpg") for index in range(count)]

    def test_execute_jobs_results_in_job_order(self, tmp_path: Path):
        """Test one result per job, in the order given."""
        jobs = self.make_jobs(tmp_path, 4)

        results = asyncio.run(execute_jobs(jobs, FakeToolRunner(), TOOLS, concurrency=2))

        assert [result.output_path for result in results] == [job.output_path for job in jobs]
        assert all(result.success for result in results)

    def test_execute_jobs_respects_concurrency(self, tmp_path: Path):
        """Test that no more than `concurrency` jobs run external programs at once."""
        jobs = self.make_jobs(tmp_path, 6)
        runner = FakeToolRunner()
        runner.delay_seconds = 0.01

        asyncio.run(execute_jobs(jobs, runner, TOOLS, concurrency=2))

        assert runner.max_in_flight <= 2
        assert runner.max_in_flight == 2

    def test_execute_jobs_isolates_failures(self, tmp_path: Path):
        """Test that one failing job does not stop the others."""
        jobs = self.make_jobs(tmp_path, 3)
        runner = FakeToolRunner()
        runner.fail_on("photo1.jpg", "Corrupt JPEG data")
        logger = FakeLogger()

        results = asyncio.run(
            execute_jobs(jobs, runner, TOOLS, concurrency=3, logger=logger)
        )

        assert [result.success for result in results] == [True, False, True]
        assert "Corrupt JPEG data" in results[1].error
        assert not jobs[1].output_path.exists()
        assert jobs[0].output_path.exists() and jobs[2].output_path.exists()
        assert any("1 error(s)" in message for message in logger.messages("WARNING"))

    def test_execute_jobs_fail_fast(self, tmp_path: Path):
        """Test that fail_fast aborts the batch with the job error."""
        jobs = self.make_jobs(tmp_path, 3)
        runner = FakeToolRunner()
        runner.fail_on("photo0.jpg", "Corrupt JPEG data")

        with pytest.raises(JobError, match="Corrupt JPEG data"):
            asyncio.run(
                execute_jobs(
                    jobs, runner, TOOLS, concurrency=1, fail_fast=True, logger=FakeLogger()
                )
            )

    def test_execute_jobs_is_idempotent(self, tmp_path: Path):
        """Test that a second run skips everything and leaves outputs unchanged."""
        jobs = self.make_jobs(tmp_path, 2)
        asyncio.run(execute_jobs(jobs, FakeToolRunner(), TOOLS))
        before = {job.output_path: job.output_path.read_bytes() for job in jobs}
        runner = FakeToolRunner()

        results = asyncio.run(execute_jobs(jobs, runner, TOOLS))

        assert all(result.skipped for result in results)
        assert runner.calls == []
        assert {job.output_path: job.output_path.read_bytes() for job in jobs} == before

    def test_execute_jobs_on_complete(self, tmp_path: Path):
        """Test that the callback sees every result."""
        jobs = self.make_jobs(tmp_path, 3)
        seen: List[ProcessResult] = []

        asyncio.run(execute_jobs(jobs, FakeToolRunner(), TOOLS, on_complete=seen.append))

        assert len(seen) == 3


class TestSortResults:
    """Tests for sort_results."""

    def test_sort_by_input_then_target_order(self):
        """Test that targets keep their declaration order, not alphabetical."""
        targets = [Target(name="thumb", quality=1.0), Target(name="full", quality=1.0)]
        results = [
            ProcessResult(input_path=Path(name), output_path=Path("x"), target_name=target)
            for name, target in [("b.jpg", "thumb"), ("a.jpg", "full"), ("a.jpg", "thumb")]
        ]

        ordered = sort_results(results, targets)

        assert [(str(r.input_path), r.target_name) for r in ordered] == [
            ("a.jpg", "thumb"),
            ("a.jpg", "full"),
            ("b.jpg", "thumb"),
        ]
