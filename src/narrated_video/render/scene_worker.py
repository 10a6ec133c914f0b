"""MoviePy scene composition, run as a child process by ``SceneBackend``.

Usage: ``python -m narrated_video.render.scene_worker <payload.json>``

The payload holds a serialized ``RenderRequest`` plus the video settings of
the calling process. Running in a separate process lets the orchestrator's
timeout kill a render that MoviePy would otherwise block on.
"""

from __future__ import annotations

import json
import sys

import numpy as np
import structlog
from moviepy import AudioFileClip, ColorClip, CompositeVideoClip, ImageClip, TextClip, VideoClip, vfx
from PIL import Image

from narrated_video.config import Settings
from narrated_video.models.timeline import VisualSlot
from narrated_video.render.backends.base import RenderRequest
from narrated_video.render.backends.scene import FORWARDED_SETTINGS
from narrated_video.render.filters import CAPTION_MARGIN_BOTTOM
from narrated_video.render.overlay import OverlayInstruction
from narrated_video.render.timeline import crossfade_padding, effect_transform

logger = structlog.get_logger()


def letterbox(image_path: str, width: int, height: int) -> Image.Image:
    """Fit the image inside ``width x height`` on black, preserving aspect ratio."""
    with Image.open(image_path) as img:
        img = img.convert("RGB")
        scale = min(width / img.width, height / img.height)
        fitted = img.resize((max(1, int(img.width * scale)), max(1, int(img.height * scale))), Image.LANCZOS)
    canvas = Image.new("RGB", (width, height), (0, 0, 0))
    canvas.paste(fitted, ((width - fitted.width) // 2, (height - fitted.height) // 2))
    return canvas


def kenburns_clip(slot: VisualSlot, rendered_duration: float, width: int, height: int) -> VideoClip:
    """An animated clip of *slot*'s image with its effect applied over *rendered_duration*."""
    still = letterbox(slot.image_path, width, height)

    def frame(t: float) -> np.ndarray:
        zoom, x_frac, y_frac = effect_transform(slot.effect, t / rendered_duration)
        crop_w, crop_h = width / zoom, height / zoom
        left = (width - crop_w) * x_frac
        top = (height - crop_h) * y_frac
        window = still.resize((width, height), Image.BILINEAR, box=(left, top, left + crop_w, top + crop_h))
        return np.asarray(window)

    return VideoClip(frame_function=frame, duration=rendered_duration)


def caption_clip(instruction: OverlayInstruction, config: Settings) -> TextClip:
    avail_w = config.video_width - 160
    txt = TextClip(
        text=instruction.text,
        font=instruction.font_path,
        font_size=config.caption_font_size,
        color=instruction.color,
        stroke_color="black",
        stroke_width=max(2, config.caption_font_size // 15),
        method="caption",
        size=(avail_w, None),
        text_align="center",
    )
    y = config.video_height - CAPTION_MARGIN_BOTTOM - txt.h
    return (
        txt.with_position(((config.video_width - avail_w) // 2, y))
        .with_start(instruction.start)
        .with_duration(instruction.end - instruction.start)
    )


def compose(request: RenderRequest, config: Settings) -> CompositeVideoClip:
    width, height = config.video_width, config.video_height
    padding = crossfade_padding(request.slots, config.crossfade_sec)
    origin = request.slots[0].start_time

    layers: list = [ColorClip(size=(width, height), color=(0, 0, 0)).with_duration(request.total_duration)]
    for slot, (lead, tail) in zip(request.slots, padding):
        rendered = slot.duration + lead + tail
        if config.video_effects:
            clip = kenburns_clip(slot, rendered, width, height)
        else:
            clip = ImageClip(np.asarray(letterbox(slot.image_path, width, height))).with_duration(rendered)
        clip = clip.with_start(slot.start_time - lead - origin)
        if lead:
            # The fade spans the whole overlap, centred on the slot boundary.
            clip = clip.with_effects([vfx.CrossFadeIn(2 * lead)])
        layers.append(clip)

    layers.extend(caption_clip(i, config) for i in request.overlays)
    logger.info(
        "scene.composed",
        job_id=request.job_id,
        slots=len(request.slots),
        captions=len(request.overlays),
    )
    return CompositeVideoClip(layers, size=(width, height))


def render(request: RenderRequest, config: Settings) -> str:
    video = compose(request, config)
    audio = AudioFileClip(request.audio_path)
    final = video.with_audio(audio).with_duration(request.total_duration)
    try:
        final.write_videofile(
            request.output_path,
            fps=config.video_fps,
            codec="libx264",
            audio_codec="aac",
            audio_bitrate=config.audio_bitrate,
            preset=config.video_preset,
            ffmpeg_params=["-crf", str(config.video_crf), "-pix_fmt", "yuv420p", "-movflags", "+faststart"],
            logger=None,
        )
    finally:
        final.close()
        audio.close()
    logger.info("scene.render.done", job_id=request.job_id, output_path=request.output_path)
    return request.output_path


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1:
        print("usage: python -m narrated_video.render.scene_worker <payload.json>", file=sys.stderr)
        return 2
    with open(args[0], encoding="utf-8") as f:
        payload = json.load(f)
    request = RenderRequest.model_validate(payload["request"])
    forwarded = payload.get("settings", {})
    config = Settings(**{key: forwarded[key] for key in FORWARDED_SETTINGS if key in forwarded})
    render(request, config)
    return 0


if __name__ == "__main__":
    sys.exit(main())
