"""StateGraph definition: scriptwriter -> media_producer -> [review] -> video_compiler."""

from __future__ import annotations

from langgraph.checkpoint.base import BaseCheckpointSaver
from langgraph.graph import END, StateGraph

from narrated_video.graph.edges import route_after_media, route_after_review, route_after_script
from narrated_video.graph.state import PipelineState
from narrated_video.nodes.media_producer import media_producer
from narrated_video.nodes.review_gate import open_review, review_gate
from narrated_video.nodes.scriptwriter import scriptwriter
from narrated_video.nodes.video_compiler import video_compiler


def build_graph(checkpointer: BaseCheckpointSaver | None = None):
    """Build and compile the narrated video generation graph.

    Args:
        checkpointer: Checkpoint saver for persistence and resume. Required
            for jobs that pause in review.

    Returns:
        Compiled StateGraph ready for invocation.
    """
    graph = StateGraph(PipelineState)

    graph.add_node("scriptwriter", scriptwriter)
    graph.add_node("media_producer", media_producer)
    graph.add_node("open_review", open_review)
    graph.add_node("review_gate", review_gate)
    graph.add_node("video_compiler", video_compiler)

    graph.set_entry_point("scriptwriter")

    graph.add_conditional_edges(
        "scriptwriter",
        route_after_script,
        {
            "media_producer": "media_producer",
            END: END,
        },
    )
    graph.add_conditional_edges(
        "media_producer",
        route_after_media,
        {
            "open_review": "open_review",
            "video_compiler": "video_compiler",
            END: END,
        },
    )
    graph.add_edge("open_review", "review_gate")
    graph.add_conditional_edges(
        "review_gate",
        route_after_review,
        {
            "video_compiler": "video_compiler",
            END: END,
        },
    )
    graph.add_edge("video_compiler", END)

    return graph.compile(checkpointer=checkpointer)


def initial_state(
    job_id: str,
    user_id: str,
    topic: str,
    output_path: str,
    duration_sec: float = 60.0,
    language: str = "english",
    voice_style: str = "professional",
    image_style: str = "modern",
    font: str = "dejavu-sans-bold",
    color: str = "yellow",
    captions_enabled: bool = True,
    title_card_sec: float | None = None,
    review: bool = False,
) -> PipelineState:
    return {
        "job_id": job_id,
        "user_id": user_id,
        "topic": topic,
        "duration_sec": duration_sec,
        "language": language,
        "voice_style": voice_style,
        "image_style": image_style,
        "text_style": {"font": font, "color": color},
        "captions_enabled": captions_enabled,
        "title_card_sec": title_card_sec,
        "review": review,
        "output_path": output_path,
        "segments": None,
        "script_source": None,
        "media_assets": None,
        "compile_output": None,
        "error": None,
        "error_kind": None,
    }
