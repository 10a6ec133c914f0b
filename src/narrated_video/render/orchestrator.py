"""Pipeline orchestrator: probe, assemble, compose, overlay, render.

``VideoCompiler.run_job`` drives a ``RenderJob`` through its state machine
inside one global timeout. Every intermediate file lives in the job's
workspace, which is removed on every exit path; the finished MP4 is moved
to ``job.output_path`` only after a backend succeeds, so a failed job never
leaves a partial file at the target path.
"""

from __future__ import annotations

import asyncio
import os
import shutil
from pathlib import Path
from typing import Awaitable, Callable, Optional, Protocol, Sequence

import structlog

from narrated_video.config import Settings, settings as default_settings
from narrated_video.errors import (
    DependencyUnavailableError,
    ExternalToolError,
    InvalidTransitionError,
    JobFailure,
    JobTimeoutError,
)
from narrated_video.models.job import JobStatus, RenderJob, RenderResult
from narrated_video.models.media import MeasuredAudioSegment
from narrated_video.render.backends.base import RenderBackend, RenderRequest
from narrated_video.render.backends.registry import resolve_chain
from narrated_video.render.captions import build_captions, split_display_lines, write_srt
from narrated_video.render.filters import title_card_args
from narrated_video.render.overlay import build_overlay_instructions, resolve_font
from narrated_video.render.timeline import compose_slots, title_slot
from narrated_video.render.workspace import JobWorkspace
from narrated_video.tools.audio import assemble_audio
from narrated_video.tools.ffprobe import inspect_image, probe_duration
from narrated_video.tools.process import run_tool

logger = structlog.get_logger()

RENDER_FILENAME = "render.mp4"
TITLE_CARD_FILENAME = "title_card.png"

Prober = Callable[[str, Settings], Awaitable[float]]
Assembler = Callable[..., Awaitable[str]]
ImageInspector = Callable[[str, Settings], Awaitable[object]]
TitleCardMaker = Callable[[str, str, str, Settings], Awaitable[str]]


class StatusReporter(Protocol):
    """Job persistence collaborator notified on every status change."""

    async def report(self, job_id: str, status: JobStatus, failure: Optional[JobFailure]) -> None: ...


async def make_title_card(topic: str, output_path: str, font_path: str, config: Settings) -> str:
    await run_tool(title_card_args(topic, font_path, output_path, config), stage="title_card")
    return output_path


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------


class VideoCompiler:
    """Compiles narrated videos; one instance may run many jobs concurrently.

    Collaborators are injected so each stage can be replaced (tests, other
    tool installations); defaults use ffprobe/ffmpeg and the configured
    backend chain.
    """

    def __init__(
        self,
        config: Settings | None = None,
        backends: Sequence[RenderBackend] | None = None,
        prober: Prober = probe_duration,
        assembler: Assembler = assemble_audio,
        image_inspector: ImageInspector = inspect_image,
        title_card_maker: TitleCardMaker = make_title_card,
        reporter: StatusReporter | None = None,
    ):
        self.config = config or default_settings
        self.backends = list(backends) if backends is not None else resolve_chain(self.config)
        if not self.backends:
            raise ValueError("VideoCompiler needs at least one render backend")
        self.prober = prober
        self.assembler = assembler
        self.image_inspector = image_inspector
        self.title_card_maker = title_card_maker
        self.reporter = reporter

    async def run_job(self, job: RenderJob) -> RenderResult:
        """Run *job* from ``pending`` to a terminal state.

        Returns the render result on success. On failure the job carries a
        ``JobFailure`` and the original error is re-raised; a timeout raises
        ``JobTimeoutError``.
        """
        if job.status != JobStatus.PENDING:
            raise InvalidTransitionError(
                f"Job {job.job_id} must be pending to run (status={job.status.value})"
            )

        timeout = self.config.job_timeout_sec
        workspace = JobWorkspace(self.config.temp_base_dir, job.job_id).create()
        logger.info("orchestrator.start", job_id=job.job_id, segments=len(job.segments), timeout=timeout)
        try:
            result = await asyncio.wait_for(self._run_stages(job, workspace), timeout=timeout)
        except asyncio.TimeoutError:
            stage = job.status
            error = JobTimeoutError(f"Job exceeded the {timeout:g}s timeout while {stage.value}")
            logger.error("orchestrator.timeout", job_id=job.job_id, stage=stage.value, timeout=timeout)
            await self._fail(job, error, timed_out=stage == JobStatus.RENDERING)
            raise error from None
        except Exception as exc:
            logger.exception("orchestrator.failed", job_id=job.job_id, stage=job.status.value)
            await self._fail(job, exc)
            raise
        finally:
            workspace.cleanup()

        logger.info(
            "orchestrator.done",
            job_id=job.job_id,
            output_path=result.output_path,
            duration=result.duration_sec,
            backend=result.backend,
        )
        return result

    async def retry_job(self, job: RenderJob) -> RenderResult:
        """Reset a finished job and re-run the whole pipeline from scratch."""
        job.reset()
        await self._report(job)
        return await self.run_job(job)

    # -- stages ---------------------------------------------------------------

    async def _run_stages(self, job: RenderJob, workspace: JobWorkspace) -> RenderResult:
        config = self.config
        title_sec = job.title_card_sec if job.title_card_sec is not None else config.title_card_sec

        await self._advance(job, JobStatus.PROBING)
        measured = []
        for path in job.audio_paths:
            duration = await self.prober(path, config)
            measured.append(MeasuredAudioSegment(path=path, measured_duration=duration))
        job.measured_audio = measured
        narration_sec = job.total_duration
        logger.info("orchestrator.probed", job_id=job.job_id, narration_sec=narration_sec)

        await self._advance(job, JobStatus.ASSEMBLING_AUDIO)
        audio_path = await self.assembler(job.audio_paths, workspace, lead_in_sec=title_sec, config=config)

        await self._advance(job, JobStatus.COMPOSING_VISUAL)
        for path in job.image_paths:
            await self.image_inspector(path, config)
        slots = compose_slots(job.image_paths, narration_sec, start_offset=title_sec)
        if title_sec > 0:
            title_path = await self.title_card_maker(
                job.topic, workspace.path(TITLE_CARD_FILENAME), resolve_font(job.style.font), config
            )
            slots.insert(0, title_slot(title_path, title_sec))
        job.slots = slots

        job.captions = build_captions(
            job.segments,
            [m.measured_duration for m in measured],
            start_offset=title_sec,
        )
        overlays = []
        if job.captions_enabled:
            lines = split_display_lines(job.captions, config.caption_line_chars)
            overlays = build_overlay_instructions(lines, job.style, config.caption_line_chars)

        await self._advance(job, JobStatus.RENDERING)
        request = RenderRequest(
            job_id=job.job_id,
            slots=slots,
            audio_path=audio_path,
            overlays=overlays,
            total_duration=title_sec + narration_sec,
            output_path=workspace.path(RENDER_FILENAME),
            workspace_dir=str(workspace.root),
        )
        backend_name = await self.render_with_fallback(request)
        output_path = publish(request.output_path, job.output_path)
        srt_path = None
        if job.captions:
            srt_path = write_srt(job.captions, str(Path(output_path).with_suffix(".srt")))

        await self._advance(job, JobStatus.COMPLETED)
        return RenderResult(
            job_id=job.job_id,
            output_path=output_path,
            duration_sec=request.total_duration,
            backend=backend_name,
            captions=job.captions,
            srt_path=srt_path,
        )

    async def render_with_fallback(self, request: RenderRequest) -> str:
        """Try each backend in order; return the name of the one that succeeded.

        Missing prerequisites and encoder failures move on to the next
        backend. Anything else (asset errors included) propagates at once.
        When every backend fails, the last error is raised.
        """
        last_error: Exception | None = None
        for backend in self.backends:
            try:
                await backend.ensure_available()
                await backend.render(request)
                if not os.path.isfile(request.output_path):
                    raise ExternalToolError(backend.name, 0, "backend produced no output file", stage="render")
            except (DependencyUnavailableError, ExternalToolError) as exc:
                last_error = exc
                logger.warning(
                    "render.fallback",
                    job_id=request.job_id,
                    backend=backend.name,
                    kind=exc.kind.value,
                    error=str(exc)[:300],
                )
                Path(request.output_path).unlink(missing_ok=True)
                continue
            logger.info("render.done", job_id=request.job_id, backend=backend.name)
            return backend.name

        assert last_error is not None
        raise last_error

    # -- state ----------------------------------------------------------------

    async def _advance(self, job: RenderJob, status: JobStatus) -> None:
        job.transition(status)
        logger.info("orchestrator.status", job_id=job.job_id, status=status.value)
        await self._report(job)

    async def _fail(self, job: RenderJob, exc: BaseException, *, timed_out: bool = False) -> None:
        if job.status.is_terminal:
            return
        job.fail(JobFailure.from_exception(exc), timed_out=timed_out)
        try:
            await self._report(job)
        except Exception:
            # The job's own error is the one that must reach the caller.
            logger.exception("orchestrator.report_failed", job_id=job.job_id, status=job.status.value)

    async def _report(self, job: RenderJob) -> None:
        if self.reporter is not None:
            await self.reporter.report(job.job_id, job.status, job.failure)


def publish(rendered_path: str, output_path: str) -> str:
    """Move a finished render from the workspace to its final location."""
    Path(output_path).parent.mkdir(parents=True, exist_ok=True)
    shutil.move(rendered_path, output_path)
    return output_path
