"""Job persistence: in-memory job records and status fan-out.

Replace with a database-backed implementation for multi-process
deployments; the orchestrator only depends on ``report``.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Optional

import structlog
from pydantic import BaseModel, Field

from narrated_video.errors import JobFailure
from narrated_video.models.job import ExternalStatus, JobStatus, RenderResult, external_status
from narrated_video.models.timeline import CaptionEntry

logger = structlog.get_logger()

TERMINAL_EXTERNAL = frozenset({ExternalStatus.COMPLETED, ExternalStatus.FAILED})


def _now() -> datetime:
    return datetime.now(timezone.utc)


class JobRecord(BaseModel):
    job_id: str
    user_id: str
    topic: str
    status: ExternalStatus = ExternalStatus.PENDING
    stage: Optional[str] = None  # fine-grained compile state, e.g. "rendering"
    attempt: int = 1
    cost: int = 0

    error_message: Optional[str] = None
    error_kind: Optional[str] = None
    retryable: bool = False

    output_path: Optional[str] = None
    srt_path: Optional[str] = None
    duration_sec: Optional[float] = None
    backend: Optional[str] = None
    captions: list[CaptionEntry] = Field(default_factory=list)

    # Editable draft while the job waits in review; index-aligned
    segments: list[dict[str, Any]] = Field(default_factory=list)
    image_paths: list[str] = Field(default_factory=list)

    # Original request parameters, replayed on retry
    params: dict[str, Any] = Field(default_factory=dict)

    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)


class JobStore:
    """In-memory job records. Implements the orchestrator's status reporter."""

    def __init__(self):
        self._records: dict[str, JobRecord] = {}
        self._subscribers: dict[str, list[asyncio.Queue]] = {}

    async def create(self, record: JobRecord) -> JobRecord:
        self._records[record.job_id] = record
        self._publish(record)
        logger.info("job_store.created", job_id=record.job_id, user_id=record.user_id)
        return record

    async def get(self, job_id: str) -> JobRecord | None:
        return self._records.get(job_id)

    async def set_status(
        self,
        job_id: str,
        status: ExternalStatus,
        *,
        stage: str | None = None,
        failure: JobFailure | None = None,
    ) -> JobRecord:
        record = self._require(job_id)
        record.status = status
        record.stage = stage
        if failure is not None:
            record.error_message = failure.message
            record.error_kind = failure.kind.value
            record.retryable = failure.retryable
        record.updated_at = _now()
        self._publish(record)
        logger.info("job_store.status", job_id=job_id, status=status.value, stage=stage)
        return record

    async def report(self, job_id: str, status: JobStatus, failure: Optional[JobFailure]) -> None:
        await self.set_status(job_id, external_status(status), stage=status.value, failure=failure)

    async def save_result(self, job_id: str, result: RenderResult) -> JobRecord:
        record = self._require(job_id)
        record.output_path = result.output_path
        record.srt_path = result.srt_path
        record.duration_sec = result.duration_sec
        record.backend = result.backend
        record.captions = list(result.captions)
        return await self.set_status(job_id, ExternalStatus.COMPLETED, stage=JobStatus.COMPLETED.value)

    async def save_draft(
        self,
        job_id: str,
        *,
        segments: list[dict[str, Any]] | None = None,
        image_paths: list[str] | None = None,
    ) -> JobRecord:
        """Replace the reviewable script and/or image list of a job."""
        record = self._require(job_id)
        if segments is not None:
            record.segments = [dict(s) for s in segments]
        if image_paths is not None:
            record.image_paths = list(image_paths)
        record.updated_at = _now()
        logger.debug("job_store.draft_saved", job_id=job_id, segments=len(record.segments))
        return record

    async def reset(self, job_id: str) -> JobRecord:
        """Return a failed job to pending for a full re-run."""
        record = self._require(job_id)
        if record.status != ExternalStatus.FAILED:
            raise ValueError(f"Job {job_id} is {record.status.value}; only failed jobs can be retried")
        record.attempt += 1
        record.error_message = None
        record.error_kind = None
        record.retryable = False
        record.output_path = None
        record.srt_path = None
        record.duration_sec = None
        record.backend = None
        record.captions = []
        record.segments = []
        record.image_paths = []
        return await self.set_status(job_id, ExternalStatus.PENDING)

    # -- subscriptions --------------------------------------------------------

    def subscribe(self, job_id: str) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.setdefault(job_id, []).append(queue)
        record = self._records.get(job_id)
        if record is not None:
            queue.put_nowait(_event(record))
        return queue

    def unsubscribe(self, job_id: str, queue: asyncio.Queue) -> None:
        queues = self._subscribers.get(job_id, [])
        if queue in queues:
            queues.remove(queue)
        if not queues:
            self._subscribers.pop(job_id, None)

    def _publish(self, record: JobRecord) -> None:
        for queue in self._subscribers.get(record.job_id, []):
            queue.put_nowait(_event(record))

    def _require(self, job_id: str) -> JobRecord:
        record = self._records.get(job_id)
        if record is None:
            raise KeyError(f"Unknown job {job_id}")
        return record


def _event(record: JobRecord) -> dict[str, Any]:
    return {
        "job_id": record.job_id,
        "status": record.status.value,
        "stage": record.stage,
        "error_message": record.error_message,
    }


@lru_cache(maxsize=1)
def get_job_store() -> JobStore:
    return JobStore()
