"""Central pipeline state definition for the LangGraph workflow."""

from __future__ import annotations

from typing import Optional

from typing_extensions import TypedDict


class SegmentData(TypedDict):
    text: str
    image_prompt: str
    planned_duration: float


class MediaAssets(TypedDict):
    image_paths: list[str]  # index-aligned with segments
    audio_paths: list[str]  # index-aligned with segments
    media_dir: str


class TextStyleData(TypedDict):
    font: str
    color: str


class CompileOutput(TypedDict):
    output_path: str
    srt_path: Optional[str]
    duration_sec: float
    backend: str


class PipelineState(TypedDict):
    """Central state shared across all LangGraph nodes."""

    # Run configuration (set once at start)
    job_id: str
    user_id: str
    topic: str
    duration_sec: float
    language: str
    voice_style: str
    image_style: str
    text_style: TextStyleData
    captions_enabled: bool
    title_card_sec: Optional[float]
    review: bool  # pause in editing before compiling
    output_path: str

    # Node outputs
    segments: Optional[list[SegmentData]]
    script_source: Optional[str]  # "llm" | "fallback"
    media_assets: Optional[MediaAssets]
    compile_output: Optional[CompileOutput]

    # Error tracking
    error: Optional[str]
    error_kind: Optional[str]
