"""Render job model and its status state machine."""

from __future__ import annotations

import uuid
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from narrated_video.errors import InvalidTransitionError, JobFailure
from narrated_video.models.media import MeasuredAudioSegment
from narrated_video.models.script import ScriptSegment
from narrated_video.models.timeline import CaptionEntry, TextStyle, VisualSlot


class JobStatus(str, Enum):
    PENDING = "pending"
    PROBING = "probing"
    ASSEMBLING_AUDIO = "assembling_audio"
    COMPOSING_VISUAL = "composing_visual"
    RENDERING = "rendering"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.TIMED_OUT})

_FORWARD: dict[JobStatus, JobStatus] = {
    JobStatus.PENDING: JobStatus.PROBING,
    JobStatus.PROBING: JobStatus.ASSEMBLING_AUDIO,
    JobStatus.ASSEMBLING_AUDIO: JobStatus.COMPOSING_VISUAL,
    JobStatus.COMPOSING_VISUAL: JobStatus.RENDERING,
    JobStatus.RENDERING: JobStatus.COMPLETED,
}


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    if current.is_terminal:
        return False
    if target == JobStatus.FAILED:
        return True
    if target == JobStatus.TIMED_OUT:
        return current == JobStatus.RENDERING
    return _FORWARD.get(current) == target


class ExternalStatus(str, Enum):
    """Status vocabulary of the external job store."""

    PENDING = "pending"
    GENERATING = "generating"
    EDITING = "editing"
    COMPILING = "compiling"
    COMPLETED = "completed"
    FAILED = "failed"


def external_status(status: JobStatus) -> ExternalStatus:
    if status == JobStatus.PENDING:
        return ExternalStatus.PENDING
    if status == JobStatus.COMPLETED:
        return ExternalStatus.COMPLETED
    if status in (JobStatus.FAILED, JobStatus.TIMED_OUT):
        return ExternalStatus.FAILED
    return ExternalStatus.COMPILING


class RenderJob(BaseModel):
    """Everything needed to compile one video, plus its lifecycle state.

    ``measured_audio``, ``captions`` and ``slots`` are filled in by the
    orchestrator as the stages run.
    """

    job_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    topic: str = ""
    segments: list[ScriptSegment]
    audio_paths: list[str]
    image_paths: list[str] = Field(min_length=1)
    style: TextStyle = Field(default_factory=TextStyle)
    captions_enabled: bool = True
    title_card_sec: Optional[float] = Field(default=None, ge=0)
    output_path: str

    status: JobStatus = JobStatus.PENDING
    failure: Optional[JobFailure] = None
    measured_audio: list[MeasuredAudioSegment] = Field(default_factory=list)
    captions: list[CaptionEntry] = Field(default_factory=list)
    slots: list[VisualSlot] = Field(default_factory=list)

    @model_validator(mode="after")
    def _audio_matches_segments(self) -> "RenderJob":
        if len(self.audio_paths) != len(self.segments):
            raise ValueError(
                f"{len(self.audio_paths)} audio clips for {len(self.segments)} script segments"
            )
        if not self.segments:
            raise ValueError("A render job needs at least one script segment")
        return self

    @property
    def total_duration(self) -> float:
        """Measured narration length, excluding any title card."""
        return sum(seg.measured_duration for seg in self.measured_audio)

    @property
    def error_message(self) -> str | None:
        return self.failure.message if self.failure else None

    def transition(self, target: JobStatus) -> None:
        if not can_transition(self.status, target):
            raise InvalidTransitionError(
                f"Job {self.job_id}: cannot move from {self.status.value} to {target.value}"
            )
        self.status = target

    def fail(self, failure: JobFailure, *, timed_out: bool = False) -> None:
        target = JobStatus.TIMED_OUT if timed_out else JobStatus.FAILED
        self.transition(target)
        self.failure = failure

    def reset(self) -> None:
        """Return a finished job to ``pending`` for a full re-run."""
        if not self.status.is_terminal:
            raise InvalidTransitionError(
                f"Job {self.job_id}: only finished jobs can be reset (status={self.status.value})"
            )
        self.status = JobStatus.PENDING
        self.failure = None
        self.measured_audio = []
        self.captions = []
        self.slots = []


class RenderResult(BaseModel):
    job_id: str
    output_path: str
    duration_sec: float
    backend: str
    captions: list[CaptionEntry]
    srt_path: Optional[str] = None
