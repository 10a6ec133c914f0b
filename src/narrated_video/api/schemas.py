"""Request/Response schemas for the FastAPI endpoints."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field

from narrated_video.config import DEFAULT_COLOR, DEFAULT_FONT
from narrated_video.models.timeline import CaptionEntry


class VideoCreateRequest(BaseModel):
    user_id: str
    topic: str = Field(min_length=1, max_length=200)
    duration_sec: float = Field(default=60.0, ge=10, le=600)
    language: str = "english"
    voice_style: str = Field(default="professional", description="professional | casual | enthusiastic | educational")
    image_style: str = Field(default="modern", description="modern | illustrated | photographic | minimalist")
    font: str = DEFAULT_FONT
    color: str = DEFAULT_COLOR
    captions_enabled: bool = True
    title_card_sec: Optional[float] = Field(default=None, ge=0, le=10)
    review: bool = Field(default=False, description="Pause in editing before compiling")
    cost: int = Field(default=0, ge=0, description="Precomputed credit cost of this job")


class VideoCreateResponse(BaseModel):
    job_id: str
    status: str = "pending"


class VideoStatusResponse(BaseModel):
    job_id: str
    status: str  # "pending" | "generating" | "editing" | "compiling" | "completed" | "failed"
    stage: Optional[str] = None
    attempt: int = 1
    error: Optional[str] = None
    error_kind: Optional[str] = None
    retryable: bool = False
    output_path: Optional[str] = None
    srt_path: Optional[str] = None
    duration_sec: Optional[float] = None
    backend: Optional[str] = None


class CaptionsResponse(BaseModel):
    job_id: str
    captions: list[CaptionEntry]


class RetryResponse(BaseModel):
    job_id: str
    status: str  # "pending"
    attempt: int


class SegmentEdit(BaseModel):
    text: str = Field(min_length=1, max_length=1000)
    image_prompt: Optional[str] = Field(default=None, min_length=1)


class ScriptUpdateRequest(BaseModel):
    segments: list[SegmentEdit] = Field(min_length=1)


class DraftResponse(BaseModel):
    job_id: str
    status: str
    segments: list[dict[str, Any]]
    image_paths: list[str]


class ImageRegenerateRequest(BaseModel):
    image_prompt: Optional[str] = Field(default=None, min_length=1)
    image_style: Optional[str] = None


class ImageRegenerateResponse(BaseModel):
    job_id: str
    image_index: int
    image_path: str
    credits_charged: int


class CompileRequest(BaseModel):
    custom_images: dict[int, str] = Field(
        default_factory=dict, description="Image index -> local path or URL replacing the generated image"
    )


class CompileResponse(BaseModel):
    job_id: str
    status: str  # "generating"
