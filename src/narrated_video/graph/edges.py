"""Conditional edge routing functions for the pipeline graph."""

from __future__ import annotations

from typing import Literal

from narrated_video.graph.state import PipelineState

END = "__end__"


def route_after_script(state: PipelineState) -> Literal["media_producer", "__end__"]:
    """Stop on a script failure, otherwise produce media."""
    if state.get("error") or not state.get("segments"):
        return END
    return "media_producer"


def route_after_media(state: PipelineState) -> Literal["open_review", "video_compiler", "__end__"]:
    """Stop when any image or narration clip failed; otherwise review or compile."""
    if state.get("error") or state.get("media_assets") is None:
        return END
    if state.get("review"):
        return "open_review"
    return "video_compiler"


def route_after_review(state: PipelineState) -> Literal["video_compiler", "__end__"]:
    """Stop when applying the edits failed, otherwise compile."""
    if state.get("error"):
        return END
    return "video_compiler"
