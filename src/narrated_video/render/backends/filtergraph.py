"""Single-pass backend: one ffmpeg filter graph for visuals, captions and audio."""

from __future__ import annotations

import structlog

from narrated_video.render.backends.base import RenderBackend, RenderRequest
from narrated_video.render.filters import caption_chain, encode_args, visual_graph
from narrated_video.render.timeline import crossfade_padding
from narrated_video.tools.process import run_tool

logger = structlog.get_logger()


class FilterGraphBackend(RenderBackend):
    """Animated slots, centred cross-fades and burned-in captions in one encode."""

    name = "filtergraph"

    def build_args(self, request: RenderRequest) -> list[str]:
        config = self.config
        padding = crossfade_padding(request.slots, config.crossfade_sec)
        input_args, chains, visual_label = visual_graph(request.slots, padding, config)
        audio_index = len(request.slots)
        chains.append(caption_chain(visual_label, request.overlays, config.caption_font_size))

        return [
            config.ffmpeg_path, "-y",
            *input_args,
            "-i", request.audio_path,
            "-filter_complex", ";".join(chains),
            "-map", "[vout]",
            "-map", f"{audio_index}:a",
            *encode_args(config, request.total_duration),
            request.output_path,
        ]

    async def render(self, request: RenderRequest) -> str:
        args = self.build_args(request)
        logger.info(
            "filtergraph.render.start",
            job_id=request.job_id,
            slots=len(request.slots),
            overlays=len(request.overlays),
        )
        await run_tool(args, stage="render_filtergraph")
        logger.info("filtergraph.render.done", job_id=request.job_id, output_path=request.output_path)
        return request.output_path
