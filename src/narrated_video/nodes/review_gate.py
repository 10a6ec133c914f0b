"""Review Gate: holds a job in ``editing`` until the client asks for a compile.

``open_review`` publishes the generated script and images as the job's
editable draft. ``review_gate`` then interrupts the graph; the compile
endpoint resumes it with the edited draft, and the changes are applied to
the media before the video compiler runs.
"""

from __future__ import annotations

import asyncio
import os
import shutil
from pathlib import Path

import structlog
from langchain_core.runnables import RunnableConfig
from langgraph.types import interrupt

from narrated_video.config import Settings
from narrated_video.errors import AssetMissingError, JobFailure
from narrated_video.graph.context import job_store_from, settings_from
from narrated_video.graph.state import MediaAssets, PipelineState, SegmentData
from narrated_video.models.job import ExternalStatus
from narrated_video.models.script import ScriptSegment
from narrated_video.tools.dalle import download_image
from narrated_video.tools.elevenlabs import synthesize

logger = structlog.get_logger()

REVIEW_STAGE = "review"


async def open_review(state: PipelineState, config: RunnableConfig) -> dict:
    job_id = state["job_id"]
    store = job_store_from(config)
    assets = state["media_assets"] or {}

    await store.save_draft(job_id, segments=state["segments"] or [], image_paths=assets.get("image_paths", []))
    await store.set_status(job_id, ExternalStatus.EDITING, stage=REVIEW_STAGE)
    logger.info("review_gate.opened", job_id=job_id, segments=len(state["segments"] or []))
    return {}


async def _resolve_image(source: str, target: Path) -> str:
    """A replacement image: downloaded when *source* is a URL, else a local file."""
    if source.startswith(("http://", "https://")):
        return await download_image(source, str(target))
    if not os.path.isfile(source):
        raise AssetMissingError(source)
    return source


async def apply_edits(
    state: PipelineState, edits: dict, config: Settings
) -> tuple[list[SegmentData], MediaAssets]:
    """Apply an edited draft to the generated media.

    *edits* may carry ``segments`` (same count as the script) and
    ``images`` (``{"<index>": path_or_url}``). Segments whose text changed
    get a new narration clip; images that differ from the current ones
    replace them.
    """
    current = state["segments"] or []
    edited = [ScriptSegment(**s).model_dump() for s in edits.get("segments") or current]
    if len(edited) != len(current):
        raise ValueError(f"Edited script has {len(edited)} segments, expected {len(current)}")

    assets = state["media_assets"]
    media_dir = Path(assets["media_dir"])
    image_paths = list(assets["image_paths"])
    audio_paths = list(assets["audio_paths"])

    for key, source in (edits.get("images") or {}).items():
        index = int(key)
        if not 0 <= index < len(image_paths):
            raise ValueError(f"Image index {index} is out of range")
        if source != image_paths[index]:
            image_paths[index] = await _resolve_image(source, media_dir / f"image_{index}_custom.png")

    changed = [i for i, (old, new) in enumerate(zip(current, edited)) if old["text"] != new["text"]]
    semaphore = asyncio.Semaphore(config.tts_concurrency)

    async def revoice(index: int) -> None:
        path = str(media_dir / f"audio_{index}_edited.mp3")
        async with semaphore:
            await synthesize(edited[index]["text"], state["voice_style"], path, state["language"], config=config)
        audio_paths[index] = path

    tasks = [asyncio.ensure_future(revoice(i)) for i in changed]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    logger.info("review_gate.edits_applied", job_id=state["job_id"], revoiced=changed)
    return edited, {"image_paths": image_paths, "audio_paths": audio_paths, "media_dir": str(media_dir)}


async def review_gate(state: PipelineState, config: RunnableConfig) -> dict:
    """Interrupt the pipeline until the edited draft comes back.

    On resume, the Command(resume=...) payload provides:
      {"segments": [...], "images": {"0": "/path/or/url"}}
    """
    job_id = state["job_id"]
    assets = state["media_assets"] or {}

    edits = interrupt(
        {
            "type": "edit_review",
            "job_id": job_id,
            "segments": state["segments"],
            "image_paths": assets.get("image_paths", []),
        }
    )

    store = job_store_from(config)
    try:
        segments, new_assets = await apply_edits(state, edits or {}, settings_from(config))
    except Exception as exc:
        logger.exception("review_gate.error", job_id=job_id)
        failure = JobFailure.from_exception(exc)
        message = f"Applying edits failed: {failure.message}"
        if assets.get("media_dir"):
            shutil.rmtree(assets["media_dir"], ignore_errors=True)
        await store.set_status(
            job_id,
            ExternalStatus.FAILED,
            stage="review_gate",
            failure=failure.model_copy(update={"message": message}),
        )
        return {"error": message, "error_kind": failure.kind.value}

    await store.save_draft(job_id, segments=segments, image_paths=new_assets["image_paths"])
    return {"segments": segments, "media_assets": new_assets}
