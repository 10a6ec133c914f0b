"""Video Compiler node: turns the generated assets into the final MP4."""

from __future__ import annotations

import shutil

import structlog
from langchain_core.runnables import RunnableConfig

from narrated_video.errors import JobFailure
from narrated_video.graph.context import compiler_from, job_store_from
from narrated_video.graph.state import PipelineState
from narrated_video.models.job import ExternalStatus, RenderJob
from narrated_video.models.script import ScriptSegment
from narrated_video.models.timeline import TextStyle

logger = structlog.get_logger()


def build_render_job(state: PipelineState) -> RenderJob:
    assets = state["media_assets"] or {}
    return RenderJob(
        job_id=state["job_id"],
        topic=state["topic"],
        segments=[ScriptSegment(**s) for s in state["segments"] or []],
        audio_paths=list(assets.get("audio_paths", [])),
        image_paths=list(assets.get("image_paths", [])),
        style=TextStyle(**state["text_style"]),
        captions_enabled=state["captions_enabled"],
        title_card_sec=state.get("title_card_sec"),
        output_path=state["output_path"],
    )


async def video_compiler(state: PipelineState, config: RunnableConfig) -> dict:
    job_id = state["job_id"]
    store = job_store_from(config)
    compiler = compiler_from(config)
    media_dir = (state.get("media_assets") or {}).get("media_dir")

    try:
        job = build_render_job(state)
        result = await compiler.run_job(job)
    except Exception as exc:
        failure = JobFailure.from_exception(exc)
        logger.error("video_compiler.failed", job_id=job_id, kind=failure.kind.value, error=failure.message[:300])
        record = await store.get(job_id)
        if record is not None and record.status != ExternalStatus.FAILED:
            # Failures before the orchestrator took over (invalid job) are reported here.
            await store.set_status(job_id, ExternalStatus.FAILED, stage="video_compiler", failure=failure)
        return {"error": failure.message, "error_kind": failure.kind.value}
    finally:
        if media_dir:
            shutil.rmtree(media_dir, ignore_errors=True)

    await store.save_result(job_id, result)
    logger.info("video_compiler.done", job_id=job_id, output_path=result.output_path, backend=result.backend)
    return {
        "compile_output": {
            "output_path": result.output_path,
            "srt_path": result.srt_path,
            "duration_sec": result.duration_sec,
            "backend": result.backend,
        }
    }
