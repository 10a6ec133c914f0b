"""Multi-step backend: one encoded segment per slot, joined by the concat demuxer.

Slower than the single filter graph but each ffmpeg call stays small, which
survives encoders that choke on large graphs. Cross-fades become fades
through black at slot edges; slot timing is unchanged.
"""

from __future__ import annotations

import structlog

from narrated_video.render.backends.base import RenderBackend, RenderRequest
from narrated_video.render.filters import caption_chain, image_input_args, slot_chain
from narrated_video.tools.audio import write_concat_list
from narrated_video.tools.process import run_tool

logger = structlog.get_logger()


class SegmentsBackend(RenderBackend):
    name = "segments"

    def segment_args(self, request: RenderRequest, index: int, output_path: str) -> list[str]:
        config = self.config
        slot = request.slots[index]
        fade = config.crossfade_sec / 2
        fades: list[str] = []
        if fade > 0 and slot.duration > 2 * fade:
            if index > 0:
                fades.append(f"fade=t=in:st=0:d={fade:.3f}")
            if index < len(request.slots) - 1:
                fades.append(f"fade=t=out:st={slot.duration - fade:.3f}:d={fade:.3f}")

        # Frame counts follow the absolute slot edges so rounding never accumulates.
        fps = config.video_fps
        frames = max(1, round(slot.end_time * fps) - round(slot.start_time * fps))
        chain = slot_chain("[0:v]", slot, slot.duration, config, extra=fades) + "[vseg]"
        return [
            config.ffmpeg_path, "-y",
            *image_input_args(slot.image_path, slot.duration + 1 / fps, fps),
            "-filter_complex", chain,
            "-map", "[vseg]",
            "-frames:v", str(frames),
            "-c:v", "libx264",
            "-preset", config.video_preset,
            "-crf", str(config.video_crf),
            "-pix_fmt", "yuv420p",
            "-r", str(config.video_fps),
            "-an",
            output_path,
        ]

    def mux_args(self, request: RenderRequest, video_path: str) -> list[str]:
        config = self.config
        args = [config.ffmpeg_path, "-y", "-i", video_path, "-i", request.audio_path]
        if request.overlays:
            args += [
                "-filter_complex",
                caption_chain("[0:v]", request.overlays, config.caption_font_size),
                "-map", "[vout]",
                "-c:v", "libx264",
                "-preset", config.video_preset,
                "-crf", str(config.video_crf),
                "-pix_fmt", "yuv420p",
            ]
        else:
            args += ["-map", "0:v", "-c:v", "copy"]
        args += [
            "-map", "1:a",
            "-c:a", "aac",
            "-b:a", config.audio_bitrate,
            "-t", f"{request.total_duration:.3f}",
            "-movflags", "+faststart",
            request.output_path,
        ]
        return args

    async def render(self, request: RenderRequest) -> str:
        workspace = request.workspace
        segment_paths: list[str] = []
        for i in range(len(request.slots)):
            seg_path = workspace.path(f"segment_{i}.mp4")
            segment_paths.append(seg_path)
            await run_tool(self.segment_args(request, i, seg_path), stage=f"segment_{i}")
            logger.debug("segments.segment_done", job_id=request.job_id, index=i)

        list_path = write_concat_list(segment_paths, workspace.path("video_concat_list.txt"))
        joined_path = workspace.path("concatenated_video.mp4")
        await run_tool(
            [
                self.config.ffmpeg_path, "-y",
                "-f", "concat", "-safe", "0",
                "-i", list_path,
                "-c", "copy",
                joined_path,
            ],
            stage="concat_segments",
        )

        await run_tool(self.mux_args(request, joined_path), stage="mux")
        workspace.remove_files([*segment_paths, list_path, joined_path])
        logger.info(
            "segments.render.done",
            job_id=request.job_id,
            segments=len(segment_paths),
            output_path=request.output_path,
        )
        return request.output_path
