"""FastAPI route handlers for the video API."""

from __future__ import annotations

import json
import uuid
from pathlib import Path
from typing import Any, Optional

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from langgraph.types import Command
from sse_starlette.sse import EventSourceResponse

from narrated_video.api.dependencies import credit_ledger, get_compiled_graph, job_store
from narrated_video.api.schemas import (
    CaptionsResponse,
    CompileRequest,
    CompileResponse,
    DraftResponse,
    ImageRegenerateRequest,
    ImageRegenerateResponse,
    RetryResponse,
    ScriptUpdateRequest,
    VideoCreateRequest,
    VideoCreateResponse,
    VideoStatusResponse,
)
from narrated_video.config import settings
from narrated_video.errors import ErrorKind, JobFailure
from narrated_video.graph.builder import initial_state
from narrated_video.memory.credit_ledger import CreditLedger, InsufficientCreditsError
from narrated_video.memory.job_store import TERMINAL_EXTERNAL, JobRecord, JobStore
from narrated_video.models.job import ExternalStatus
from narrated_video.tools.dalle import dalle_generate

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/videos")

OUTPUT_FILENAME = "video.mp4"


def output_path_for(job_id: str) -> str:
    return str(Path(settings.output_base_dir) / job_id / OUTPUT_FILENAME)


def pipeline_config(job_id: str, attempt: int, store: JobStore) -> dict:
    """One graph thread per attempt, so a retry never resumes old state."""
    return {"configurable": {"thread_id": f"{job_id}:{attempt}", "job_store": store}}


async def _invoke(job_id: str, store: JobStore, graph_input: Any, config: dict) -> None:
    graph = get_compiled_graph()
    try:
        await graph.ainvoke(graph_input, config=config)
    except Exception as exc:
        logger.exception("pipeline.failed", job_id=job_id)
        failure = JobFailure(kind=ErrorKind.INTERNAL, message=f"Pipeline failed: {exc}", retryable=False)
        await store.set_status(job_id, ExternalStatus.FAILED, failure=failure)


async def run_pipeline(job_id: str, store: JobStore) -> None:
    """Execute the generation graph for *job_id* in the background."""
    record = await store.get(job_id)
    if record is None:
        logger.error("pipeline.unknown_job", job_id=job_id)
        return

    state = initial_state(
        job_id=job_id,
        user_id=record.user_id,
        topic=record.topic,
        output_path=output_path_for(job_id),
        **record.params,
    )
    await _invoke(job_id, store, state, pipeline_config(job_id, record.attempt, store))


async def resume_pipeline(job_id: str, store: JobStore, edits: dict) -> None:
    """Resume a job paused in review with its edited draft."""
    record = await store.get(job_id)
    if record is None:
        logger.error("pipeline.unknown_job", job_id=job_id)
        return
    await _invoke(job_id, store, Command(resume=edits), pipeline_config(job_id, record.attempt, store))


async def _require_record(store: JobStore, job_id: str) -> JobRecord:
    record = await store.get(job_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Video job {job_id} not found")
    return record


def _require_editing(record: JobRecord) -> None:
    if record.status != ExternalStatus.EDITING:
        raise HTTPException(
            status_code=409,
            detail=f"Video job {record.job_id} is {record.status.value}; it must be editing",
        )


def _draft(record: JobRecord) -> DraftResponse:
    return DraftResponse(
        job_id=record.job_id,
        status=record.status.value,
        segments=record.segments,
        image_paths=record.image_paths,
    )


@router.post("", response_model=VideoCreateResponse, status_code=202)
async def create_video(
    request: VideoCreateRequest,
    background_tasks: BackgroundTasks,
    store: JobStore = Depends(job_store),
    ledger: CreditLedger = Depends(credit_ledger),
):
    """Accept a job once the ledger confirms the balance, then run it in the background."""
    try:
        await ledger.charge(request.user_id, request.cost)
    except InsufficientCreditsError as exc:
        logger.info("video.insufficient_credits", user_id=request.user_id, balance=exc.balance, cost=exc.cost)
        raise HTTPException(status_code=402, detail=str(exc)) from exc

    job_id = uuid.uuid4().hex
    params = request.model_dump(exclude={"user_id", "topic", "cost"})
    await store.create(
        JobRecord(job_id=job_id, user_id=request.user_id, topic=request.topic, cost=request.cost, params=params)
    )
    background_tasks.add_task(run_pipeline, job_id, store)

    logger.info("video.started", job_id=job_id, user_id=request.user_id, topic=request.topic)
    return VideoCreateResponse(job_id=job_id)


@router.get("/{job_id}", response_model=VideoStatusResponse)
async def get_video_status(job_id: str, store: JobStore = Depends(job_store)):
    record = await _require_record(store, job_id)
    return VideoStatusResponse(
        job_id=record.job_id,
        status=record.status.value,
        stage=record.stage,
        attempt=record.attempt,
        error=record.error_message,
        error_kind=record.error_kind,
        retryable=record.retryable,
        output_path=record.output_path,
        srt_path=record.srt_path,
        duration_sec=record.duration_sec,
        backend=record.backend,
    )


@router.get("/{job_id}/captions", response_model=CaptionsResponse)
async def get_video_captions(job_id: str, store: JobStore = Depends(job_store)):
    """Caption entries of a completed job, for client-side caption rendering."""
    record = await _require_record(store, job_id)
    if record.status != ExternalStatus.COMPLETED:
        raise HTTPException(status_code=409, detail=f"Video job {job_id} is {record.status.value}")
    return CaptionsResponse(job_id=job_id, captions=record.captions)


@router.post("/{job_id}/retry", response_model=RetryResponse, status_code=202)
async def retry_video(job_id: str, background_tasks: BackgroundTasks, store: JobStore = Depends(job_store)):
    """Reset a failed job to pending and re-run the whole pipeline from scratch."""
    record = await _require_record(store, job_id)
    try:
        record = await store.reset(job_id)
    except ValueError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    background_tasks.add_task(run_pipeline, job_id, store)
    logger.info("video.retry", job_id=job_id, attempt=record.attempt)
    return RetryResponse(job_id=job_id, status=record.status.value, attempt=record.attempt)


# ---------------------------------------------------------------------------
# Review: draft edits while the job is paused in editing
# ---------------------------------------------------------------------------


@router.get("/{job_id}/script", response_model=DraftResponse)
async def get_video_script(job_id: str, store: JobStore = Depends(job_store)):
    """The job's reviewable script and images (empty until review opens)."""
    record = await _require_record(store, job_id)
    return _draft(record)


@router.put("/{job_id}/script", response_model=DraftResponse)
async def update_video_script(job_id: str, request: ScriptUpdateRequest, store: JobStore = Depends(job_store)):
    """Replace segment texts (and optionally image prompts); timing hints are kept."""
    record = await _require_record(store, job_id)
    _require_editing(record)
    if len(request.segments) != len(record.segments):
        raise HTTPException(
            status_code=422,
            detail=f"Script has {len(record.segments)} segments, got {len(request.segments)}",
        )

    segments = [
        {**current, "text": edit.text, "image_prompt": edit.image_prompt or current["image_prompt"]}
        for current, edit in zip(record.segments, request.segments)
    ]
    record = await store.save_draft(job_id, segments=segments)
    logger.info("video.script_updated", job_id=job_id, segments=len(segments))
    return _draft(record)


@router.post("/{job_id}/regenerate-image/{image_index}", response_model=ImageRegenerateResponse)
async def regenerate_image(
    job_id: str,
    image_index: int,
    request: Optional[ImageRegenerateRequest] = None,
    store: JobStore = Depends(job_store),
    ledger: CreditLedger = Depends(credit_ledger),
):
    """Generate a new image for one segment; the credits are refunded if generation fails."""
    record = await _require_record(store, job_id)
    _require_editing(record)
    if not 0 <= image_index < len(record.image_paths):
        raise HTTPException(status_code=400, detail=f"Invalid image index {image_index}")
    request = request or ImageRegenerateRequest()

    cost = settings.image_regeneration_cost
    try:
        await ledger.charge(record.user_id, cost)
    except InsufficientCreditsError as exc:
        raise HTTPException(status_code=402, detail=str(exc)) from exc

    segment = record.segments[image_index]
    prompt = request.image_prompt or segment["image_prompt"]
    style = request.image_style or record.params.get("image_style", "modern")
    target = Path(record.image_paths[image_index]).parent / f"image_{image_index}_{uuid.uuid4().hex[:8]}.png"
    try:
        image_path = await dalle_generate(prompt, str(target), style=style, config=settings)
    except Exception as exc:
        logger.exception("video.regenerate_image_failed", job_id=job_id, index=image_index)
        await ledger.refund(record.user_id, cost)
        raise HTTPException(status_code=502, detail=f"Image regeneration failed: {exc}") from exc

    image_paths = list(record.image_paths)
    image_paths[image_index] = image_path
    segments = [dict(s) for s in record.segments]
    segments[image_index]["image_prompt"] = prompt
    await store.save_draft(job_id, segments=segments, image_paths=image_paths)

    logger.info("video.image_regenerated", job_id=job_id, index=image_index, cost=cost)
    return ImageRegenerateResponse(
        job_id=job_id, image_index=image_index, image_path=image_path, credits_charged=cost
    )


@router.post("/{job_id}/compile", response_model=CompileResponse, status_code=202)
async def compile_video(
    job_id: str,
    background_tasks: BackgroundTasks,
    request: Optional[CompileRequest] = None,
    store: JobStore = Depends(job_store),
):
    """Leave review and compile the edited draft in the background."""
    record = await _require_record(store, job_id)
    _require_editing(record)
    request = request or CompileRequest()
    for index in request.custom_images:
        if not 0 <= index < len(record.image_paths):
            raise HTTPException(status_code=422, detail=f"Invalid image index {index}")

    images = {str(i): path for i, path in enumerate(record.image_paths)}
    images.update({str(i): source for i, source in request.custom_images.items()})
    edits = {"segments": record.segments, "images": images}

    # Leaving editing first makes a second compile request a 409.
    await store.set_status(job_id, ExternalStatus.GENERATING, stage="applying_edits")
    background_tasks.add_task(resume_pipeline, job_id, store, edits)

    logger.info("video.compile_requested", job_id=job_id, custom_images=len(request.custom_images))
    return CompileResponse(job_id=job_id, status=ExternalStatus.GENERATING.value)


@router.get("/{job_id}/stream")
async def stream_video_status(job_id: str, store: JobStore = Depends(job_store)):
    """SSE endpoint for real-time status updates; closes once the job is finished."""
    await _require_record(store, job_id)
    queue = store.subscribe(job_id)

    async def event_generator():
        try:
            while True:
                event = await queue.get()
                yield {"event": "status", "data": json.dumps(event)}
                if ExternalStatus(event["status"]) in TERMINAL_EXTERNAL:
                    break
        finally:
            store.unsubscribe(job_id, queue)

    return EventSourceResponse(event_generator())
