"""Media Producer node: one image and one narration clip per script segment."""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path

import structlog
from langchain_core.runnables import RunnableConfig

from narrated_video.config import Settings, settings as default_settings
from narrated_video.errors import JobFailure
from narrated_video.graph.context import job_store_from, settings_from
from narrated_video.graph.state import MediaAssets, PipelineState
from narrated_video.models.job import ExternalStatus
from narrated_video.models.media import AssetKind, MediaAsset
from narrated_video.models.script import ScriptSegment
from narrated_video.render.workspace import JobWorkspace
from narrated_video.tools.dalle import dalle_generate
from narrated_video.tools.elevenlabs import synthesize

logger = structlog.get_logger()

MEDIA_SUBDIR = "media"


def media_dir_for(job_id: str, config: Settings) -> Path:
    """Generated assets live inside the job workspace, so compiling cleans them up."""
    return JobWorkspace(config.temp_base_dir, job_id).root / MEDIA_SUBDIR


async def _produce_segment(
    index: int,
    segment: ScriptSegment,
    state: PipelineState,
    media_dir: Path,
    tts_semaphore: asyncio.Semaphore,
    config: Settings,
) -> tuple[MediaAsset, MediaAsset]:
    image_path = str(media_dir / f"image_{index}.png")
    audio_path = str(media_dir / f"audio_{index}.mp3")

    image_task = asyncio.ensure_future(
        dalle_generate(segment.image_prompt, image_path, style=state["image_style"], config=config)
    )
    try:
        # ElevenLabs allows a limited number of concurrent requests per plan
        async with tts_semaphore:
            await synthesize(segment.text, state["voice_style"], audio_path, state["language"], config=config)
        await image_task
    except BaseException:
        image_task.cancel()
        await asyncio.gather(image_task, return_exceptions=True)
        raise

    logger.debug("media_producer.segment_done", job_id=state["job_id"], index=index)
    return (
        MediaAsset(kind=AssetKind.IMAGE, locator=image_path, index=index),
        MediaAsset(kind=AssetKind.AUDIO, locator=audio_path, index=index),
    )


async def produce_media(state: PipelineState, config: Settings | None = None) -> MediaAssets:
    """Generate all assets, index-aligned with ``state["segments"]``.

    Any failure is fatal for the job: remaining requests are cancelled and the
    media directory is removed before the error propagates.
    """
    config = config or default_settings
    segments = [ScriptSegment(**s) for s in state["segments"] or []]
    media_dir = media_dir_for(state["job_id"], config)
    media_dir.mkdir(parents=True, exist_ok=True)
    tts_semaphore = asyncio.Semaphore(config.tts_concurrency)

    tasks = [
        asyncio.ensure_future(_produce_segment(i, seg, state, media_dir, tts_semaphore, config))
        for i, seg in enumerate(segments)
    ]
    try:
        results = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        shutil.rmtree(media_dir, ignore_errors=True)
        raise

    return {
        "image_paths": [image.locator for image, _ in results],
        "audio_paths": [audio.locator for _, audio in results],
        "media_dir": str(media_dir),
    }


async def media_producer(state: PipelineState, config: RunnableConfig) -> dict:
    job_id = state["job_id"]
    store = job_store_from(config)
    await store.set_status(job_id, ExternalStatus.GENERATING, stage="media_producer")
    logger.info("media_producer.start", job_id=job_id, segments=len(state["segments"] or []))

    try:
        assets = await produce_media(state, settings_from(config))
    except Exception as exc:
        logger.exception("media_producer.error", job_id=job_id)
        failure = JobFailure.from_exception(exc)
        message = f"Media generation failed: {failure.message}"
        await store.set_status(
            job_id,
            ExternalStatus.FAILED,
            stage="media_producer",
            failure=failure.model_copy(update={"message": message}),
        )
        return {"error": message, "error_kind": failure.kind.value}

    logger.info("media_producer.done", job_id=job_id, images=len(assets["image_paths"]))
    return {"media_assets": assets}
