"""Pipeline orchestrator: stage order, timeout, cleanup and backend fallback."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import pytest
from conftest import (
    FakeBackend,
    RecordingReporter,
    accept_image,
    fake_assembler,
    fake_prober,
    fake_title_card,
    workspace_exists,
)

from narrated_video.errors import (
    AssetCorruptError,
    AssetMissingError,
    ErrorKind,
    ExternalToolError,
    InvalidTransitionError,
    JobTimeoutError,
    ProbeError,
)
from narrated_video.models.job import JobStatus, RenderJob
from narrated_video.models.script import ScriptSegment
from narrated_video.models.timeline import EffectPreset
from narrated_video.render.orchestrator import VideoCompiler

MEASURED = [9.2, 11.0, 9.8]


def make_job(make_file, tmp_path: Path, image_names=("a.png", "b.png", "c.png"), **kwargs) -> RenderJob:
    segments = [
        ScriptSegment(text=f"Segment number {i} of the story.", image_prompt=f"prompt {i}", planned_duration=10.0)
        for i in range(3)
    ]
    audio = [make_file(f"audio_{i}.mp3") for i in range(3)]
    images = [make_file(name) if name else str(tmp_path / "missing.png") for name in image_names]
    return RenderJob(
        topic="The water cycle",
        segments=segments,
        audio_paths=audio,
        image_paths=images,
        output_path=str(tmp_path / "output" / "video.mp4"),
        **kwargs,
    )


def make_compiler(config, job: RenderJob, backends=None, reporter=None, prober=None) -> VideoCompiler:
    durations = dict(zip(job.audio_paths, MEASURED))
    return VideoCompiler(
        config=config,
        backends=backends if backends is not None else [FakeBackend(config=config)],
        prober=prober or fake_prober(durations),
        assembler=fake_assembler,
        image_inspector=accept_image,
        title_card_maker=fake_title_card,
        reporter=reporter,
    )


async def test_end_to_end_uses_measured_durations(config, make_file, tmp_path):
    """Three 10s planned segments measured at 9.2/11.0/9.8 give a 30s video."""
    job = make_job(make_file, tmp_path)
    reporter = RecordingReporter()
    compiler = make_compiler(config, job, reporter=reporter)

    result = await compiler.run_job(job)

    assert result.duration_sec == pytest.approx(30.0)
    assert job.total_duration == pytest.approx(30.0)
    assert [s.duration for s in job.slots] == [pytest.approx(10.0)] * 3
    assert job.slots[0].start_time == 0.0
    assert job.slots[-1].end_time == pytest.approx(30.0)
    assert [(c.start_time, c.end_time) for c in job.captions] == [
        (pytest.approx(0.0), pytest.approx(9.2)),
        (pytest.approx(9.2), pytest.approx(20.2)),
        (pytest.approx(20.2), pytest.approx(30.0)),
    ]
    assert job.status == JobStatus.COMPLETED
    assert reporter.statuses == [
        JobStatus.PROBING,
        JobStatus.ASSEMBLING_AUDIO,
        JobStatus.COMPOSING_VISUAL,
        JobStatus.RENDERING,
        JobStatus.COMPLETED,
    ]
    assert Path(result.output_path).read_bytes() == b"mp4"
    assert result.srt_path is not None and os.path.isfile(result.srt_path)
    assert not workspace_exists(config, job.job_id)


async def test_render_request_carries_timeline(config, make_file, tmp_path):
    """The backend receives slots, overlays and the narration length."""
    job = make_job(make_file, tmp_path)
    backend = FakeBackend(config=config)
    await make_compiler(config, job, backends=[backend]).run_job(job)

    request = backend.requests[0]
    assert request.total_duration == pytest.approx(30.0)
    assert [s.effect for s in request.slots] == [EffectPreset.ZOOM_IN, EffectPreset.ZOOM_OUT, EffectPreset.PAN_RIGHT]
    assert request.overlays
    assert request.overlays[0].start == 0.0
    assert request.overlays[-1].end == pytest.approx(30.0)


async def test_captions_disabled_sends_no_overlays(config, make_file, tmp_path):
    job = make_job(make_file, tmp_path, captions_enabled=False)
    backend = FakeBackend(config=config)
    await make_compiler(config, job, backends=[backend]).run_job(job)

    assert backend.requests[0].overlays == []
    assert len(job.captions) == 3


async def test_title_card_offsets_everything(config, make_file, tmp_path):
    """A 2s title card shifts captions and content slots by 2s."""
    job = make_job(make_file, tmp_path, title_card_sec=2.0)
    backend = FakeBackend(config=config)
    result = await make_compiler(config, job, backends=[backend]).run_job(job)

    assert result.duration_sec == pytest.approx(32.0)
    assert job.slots[0].is_title
    assert (job.slots[0].start_time, job.slots[0].end_time) == (0.0, 2.0)
    assert job.slots[1].start_time == pytest.approx(2.0)
    assert job.slots[-1].end_time == pytest.approx(32.0)
    assert job.captions[0].start_time == pytest.approx(2.0)
    assert job.captions[-1].end_time == pytest.approx(32.0)


async def test_render_timeout_ends_timed_out_and_cleans_up(config, make_file, tmp_path):
    """A render exceeding the job timeout ends in timed_out, not failed."""
    config.job_timeout_sec = 0.3
    job = make_job(make_file, tmp_path)
    reporter = RecordingReporter()
    compiler = make_compiler(config, job, backends=[FakeBackend(config=config, delay=10)], reporter=reporter)

    with pytest.raises(JobTimeoutError):
        await compiler.run_job(job)

    assert job.status == JobStatus.TIMED_OUT
    assert job.failure.kind == ErrorKind.TIMEOUT
    assert job.failure.retryable
    assert reporter.statuses[-1] == JobStatus.TIMED_OUT
    assert not workspace_exists(config, job.job_id)
    assert not os.path.exists(job.output_path)


async def test_timeout_before_rendering_is_failed_but_retryable(config, make_file, tmp_path):
    config.job_timeout_sec = 0.2
    job = make_job(make_file, tmp_path)
    durations = dict(zip(job.audio_paths, MEASURED))
    compiler = make_compiler(config, job, prober=fake_prober(durations, delay=5))

    with pytest.raises(JobTimeoutError):
        await compiler.run_job(job)

    assert job.status == JobStatus.FAILED
    assert job.failure.kind == ErrorKind.TIMEOUT
    assert job.failure.retryable


async def test_missing_image_fails_without_output(config, make_file, tmp_path):
    """A missing image aborts composition with AssetMissingError."""
    job = make_job(make_file, tmp_path, image_names=("a.png", None, "c.png"))
    backend = FakeBackend(config=config)

    with pytest.raises(AssetMissingError):
        await make_compiler(config, job, backends=[backend]).run_job(job)

    assert job.status == JobStatus.FAILED
    assert job.failure.kind == ErrorKind.ASSET_MISSING
    assert not job.failure.retryable
    assert job.error_message
    assert backend.requests == []
    assert not os.path.exists(job.output_path)
    assert not workspace_exists(config, job.job_id)


async def test_probe_failure_is_fatal(config, make_file, tmp_path):
    job = make_job(make_file, tmp_path)

    async def broken_probe(path, cfg):
        raise ProbeError("no duration")

    with pytest.raises(ProbeError):
        await make_compiler(config, job, prober=broken_probe).run_job(job)
    assert job.status == JobStatus.FAILED
    assert job.failure.kind == ErrorKind.PROBE


async def test_fallback_when_primary_dependency_missing(config, make_file, tmp_path):
    job = make_job(make_file, tmp_path)
    primary = FakeBackend("browser", config=config, unavailable=True)
    secondary = FakeBackend("segments", config=config)

    result = await make_compiler(config, job, backends=[primary, secondary]).run_job(job)

    assert result.backend == "segments"
    assert primary.requests == []
    assert len(secondary.requests) == 1


async def test_fallback_after_encoder_failure_discards_partial_output(config, make_file, tmp_path):
    job = make_job(make_file, tmp_path)
    primary = FakeBackend(
        "filtergraph",
        config=config,
        error=ExternalToolError("ffmpeg", 1, "Invalid filter graph"),
        partial_output=True,
    )
    secondary = FakeBackend("segments", config=config)

    result = await make_compiler(config, job, backends=[primary, secondary]).run_job(job)

    assert result.backend == "segments"
    assert Path(result.output_path).read_bytes() == b"mp4"


async def test_asset_errors_never_fall_back(config, make_file, tmp_path):
    job = make_job(make_file, tmp_path)
    primary = FakeBackend("filtergraph", config=config, error=AssetCorruptError("a.png"))
    secondary = FakeBackend("segments", config=config)

    with pytest.raises(AssetCorruptError):
        await make_compiler(config, job, backends=[primary, secondary]).run_job(job)

    assert secondary.requests == []
    assert job.failure.kind == ErrorKind.ASSET_CORRUPT


async def test_all_backends_failing_reports_external_tool_error(config, make_file, tmp_path):
    job = make_job(make_file, tmp_path)
    backends = [
        FakeBackend("filtergraph", config=config, error=ExternalToolError("ffmpeg", 1, "boom")),
        FakeBackend("segments", config=config, error=ExternalToolError("ffmpeg", 1, "still broken")),
    ]

    with pytest.raises(ExternalToolError) as exc_info:
        await make_compiler(config, job, backends=backends).run_job(job)

    assert "still broken" in str(exc_info.value)
    assert job.status == JobStatus.FAILED
    assert job.failure.kind == ErrorKind.EXTERNAL_TOOL
    assert "still broken" in job.failure.message


async def test_retry_reruns_from_scratch(config, make_file, tmp_path):
    job = make_job(make_file, tmp_path)
    backend = FakeBackend(config=config, error=ExternalToolError("ffmpeg", 1, "flaky"))
    compiler = make_compiler(config, job, backends=[backend])

    with pytest.raises(ExternalToolError):
        await compiler.run_job(job)
    assert job.status == JobStatus.FAILED

    backend.error = None
    result = await compiler.retry_job(job)

    assert job.status == JobStatus.COMPLETED
    assert job.failure is None
    assert os.path.isfile(result.output_path)


async def test_run_job_requires_pending(config, make_file, tmp_path):
    job = make_job(make_file, tmp_path)
    compiler = make_compiler(config, job)
    await compiler.run_job(job)

    with pytest.raises(InvalidTransitionError):
        await compiler.run_job(job)


async def test_concurrent_jobs_use_separate_workspaces(config, make_file, tmp_path):
    jobs = [make_job(make_file, tmp_path / str(i)) for i in range(3)]
    for i, job in enumerate(jobs):
        job.output_path = str(tmp_path / "output" / f"video_{i}.mp4")

    backend = FakeBackend(config=config, delay=0.05)
    durations = {p: d for job in jobs for p, d in zip(job.audio_paths, MEASURED)}
    compiler = VideoCompiler(
        config=config,
        backends=[backend],
        prober=fake_prober(durations),
        assembler=fake_assembler,
        image_inspector=accept_image,
    )

    results = await asyncio.gather(*(compiler.run_job(job) for job in jobs))

    assert {r.output_path for r in results} == {job.output_path for job in jobs}
    assert len({r.workspace_dir for r in backend.requests}) == 3
