"""Scene-composition backend: MoviePy layers rendered in a child process."""

from __future__ import annotations

import importlib.util
import json
import sys

import structlog

from narrated_video.errors import DependencyUnavailableError
from narrated_video.render.backends.base import RenderBackend, RenderRequest, require_executable
from narrated_video.tools.process import run_tool

logger = structlog.get_logger()

WORKER_MODULE = "narrated_video.render.scene_worker"

# Settings forwarded to the worker so both processes render with the same values.
FORWARDED_SETTINGS = (
    "video_width",
    "video_height",
    "video_fps",
    "video_effects",
    "crossfade_sec",
    "caption_font_size",
    "video_crf",
    "video_preset",
    "audio_bitrate",
)


class SceneBackend(RenderBackend):
    name = "scene"

    async def ensure_available(self) -> None:
        if importlib.util.find_spec("moviepy") is None:
            raise DependencyUnavailableError("moviepy is not installed")
        require_executable(self.config.ffmpeg_path)

    def write_payload(self, request: RenderRequest) -> str:
        payload = {
            "request": request.model_dump(mode="json"),
            "settings": {key: getattr(self.config, key) for key in FORWARDED_SETTINGS},
        }
        payload_path = request.workspace.path("scene_request.json")
        with open(payload_path, "w", encoding="utf-8") as f:
            json.dump(payload, f)
        return payload_path

    async def render(self, request: RenderRequest) -> str:
        payload_path = self.write_payload(request)
        logger.info("scene.render.start", job_id=request.job_id, slots=len(request.slots))
        await run_tool([sys.executable, "-m", WORKER_MODULE, payload_path], stage="render_scene")
        request.workspace.remove_files([payload_path])
        return request.output_path
