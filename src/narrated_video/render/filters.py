"""ffmpeg filter-graph building blocks shared by the encoder-based backends.

All text reaching these helpers has already been through
``sanitize_caption_text``, so it never contains quotes, colons or
backslashes and can be embedded in single-quoted option values.
"""

from __future__ import annotations

from typing import Sequence

from narrated_video.config import Settings
from narrated_video.models.timeline import EffectPreset, VisualSlot
from narrated_video.render.overlay import OverlayInstruction, sanitize_caption_text
from narrated_video.render.timeline import ZOOM_AMOUNT

TITLE_BACKGROUND = "0x1e3a8a"
CAPTION_MARGIN_BOTTOM = 110


def ffmpeg_color(hex_color: str) -> str:
    return "0x" + hex_color.lstrip("#").upper()


def fit_filter(width: int, height: int) -> str:
    """Aspect-preserving fit into the frame, letterboxed with black."""
    return (
        f"scale={width}:{height}:force_original_aspect_ratio=decrease,"
        f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2:color=black,setsar=1"
    )


def kenburns_filter(effect: EffectPreset, frames: int, width: int, height: int, fps: int) -> str:
    """zoompan expression applying *effect* linearly over *frames* output frames."""
    progress = f"min(on/{max(frames - 1, 1)},1)"
    zoom_max = f"{1 + ZOOM_AMOUNT:g}"
    centre_x = "(iw-iw/zoom)*0.5"
    centre_y = "(ih-ih/zoom)*0.5"

    if effect == EffectPreset.ZOOM_IN:
        z, x = f"1+{ZOOM_AMOUNT:g}*{progress}", centre_x
    elif effect == EffectPreset.ZOOM_OUT:
        z, x = f"1+{ZOOM_AMOUNT:g}*(1-{progress})", centre_x
    elif effect == EffectPreset.PAN_RIGHT:
        z, x = zoom_max, f"(iw-iw/zoom)*{progress}"
    elif effect == EffectPreset.PAN_LEFT:
        z, x = zoom_max, f"(iw-iw/zoom)*(1-{progress})"
    else:
        z, x = "1", centre_x

    return f"zoompan=z='{z}':x='{x}':y='{centre_y}':d=1:s={width}x{height}:fps={fps}"


def slot_frames(duration: float, fps: int) -> int:
    return max(1, round(duration * fps))


def image_input_args(path: str, duration: float, fps: int) -> list[str]:
    return ["-loop", "1", "-framerate", str(fps), "-t", f"{duration:.3f}", "-i", path]


def slot_chain(
    input_label: str,
    slot: VisualSlot,
    rendered_duration: float,
    config: Settings,
    extra: Sequence[str] = (),
) -> str:
    """Filters turning one looped still into a normalized clip.

    The still is animated with its Ken Burns preset unless
    ``config.video_effects`` is off, in which case it is only resampled.
    """
    w, h, fps = config.video_width, config.video_height, config.video_fps
    parts = [fit_filter(w, h)]
    if config.video_effects:
        parts.append(kenburns_filter(slot.effect, slot_frames(rendered_duration, fps), w, h, fps))
    else:
        parts.append(f"fps={fps}")
    parts.append("format=yuv420p")
    parts.extend(extra)
    parts.append("setpts=PTS-STARTPTS")
    # xfade needs a constant frame rate, which setpts leaves undefined.
    parts.append(f"fps={fps}")
    return f"{input_label}{','.join(parts)}"


def visual_graph(
    slots: Sequence[VisualSlot],
    padding: Sequence[tuple[float, float]],
    config: Settings,
) -> tuple[list[str], list[str], str]:
    """Build inputs and filter chains for the whole visual track.

    Returns ``(input_args, chains, output_label)``. With non-zero *padding*
    adjacent slots are joined by ``xfade`` centred on their boundary;
    otherwise they are concatenated back to back.
    """
    input_args: list[str] = []
    chains: list[str] = []
    labels: list[str] = []
    for i, (slot, (lead, tail)) in enumerate(zip(slots, padding)):
        rendered = slot.duration + lead + tail
        input_args += image_input_args(slot.image_path, rendered, config.video_fps)
        label = f"[v{i}]"
        chains.append(slot_chain(f"[{i}:v]", slot, rendered, config) + label)
        labels.append(label)

    if len(labels) == 1:
        chains.append(f"{labels[0]}null[vcat]")
        return input_args, chains, "[vcat]"

    crossfade = config.crossfade_sec
    if any(lead or tail for lead, tail in padding):
        origin = slots[0].start_time
        current = labels[0]
        for k in range(1, len(labels)):
            offset = slots[k].start_time - crossfade / 2 - origin
            out = "[vcat]" if k == len(labels) - 1 else f"[x{k}]"
            chains.append(
                f"{current}{labels[k]}xfade=transition=fade:duration={crossfade:.3f}:offset={offset:.3f}{out}"
            )
            current = out
    else:
        chains.append(f"{''.join(labels)}concat=n={len(labels)}:v=1:a=0[vcat]")
    return input_args, chains, "[vcat]"


def drawtext_filter(instruction: OverlayInstruction, font_size: int) -> str:
    return (
        f"drawtext=fontfile='{instruction.font_path}'"
        f":text='{instruction.text}'"
        f":fontsize={font_size}"
        f":fontcolor={ffmpeg_color(instruction.color)}"
        f":x=(w-text_w)/2:y=h-text_h-{CAPTION_MARGIN_BOTTOM}"
        ":borderw=3:bordercolor=black@0.9"
        ":shadowcolor=black@0.8:shadowx=2:shadowy=2"
        ":box=1:boxcolor=black@0.45:boxborderw=12"
        f":enable='gte(t,{instruction.start:.3f})*lt(t,{instruction.end:.3f})'"
    )


def caption_chain(
    input_label: str,
    instructions: Sequence[OverlayInstruction],
    font_size: int,
    output_label: str = "[vout]",
) -> str:
    if not instructions:
        return f"{input_label}null{output_label}"
    return input_label + ",".join(drawtext_filter(i, font_size) for i in instructions) + output_label


def encode_args(config: Settings, total_duration: float) -> list[str]:
    """Output options: H.264 + AAC, cut to the narration length."""
    return [
        "-c:v", "libx264",
        "-preset", config.video_preset,
        "-crf", str(config.video_crf),
        "-pix_fmt", "yuv420p",
        "-r", str(config.video_fps),
        "-c:a", "aac",
        "-b:a", config.audio_bitrate,
        "-t", f"{total_duration:.3f}",
        "-movflags", "+faststart",
    ]


def title_card_args(topic: str, font_path: str, output_path: str, config: Settings) -> list[str]:
    """ffmpeg arguments rendering a single-frame title card image."""
    title = sanitize_caption_text(topic, max_length=50) or "Explainer Video"
    w, h = config.video_width, config.video_height
    return [
        config.ffmpeg_path, "-y",
        "-f", "lavfi",
        "-i", f"color=c={TITLE_BACKGROUND}:size={w}x{h}:d=0.1",
        "-vf",
        (
            f"drawtext=fontfile='{font_path}':text='{title}':fontsize=72:fontcolor=white"
            ":x=(w-text_w)/2:y=(h-text_h)/2:shadowcolor=black:shadowx=3:shadowy=3"
        ),
        "-frames:v", "1",
        output_path,
    ]
