"""Media inspection with ffprobe: exact audio durations and image checks."""

from __future__ import annotations

import math
import os

import structlog

from narrated_video.config import Settings, settings as default_settings
from narrated_video.errors import AssetCorruptError, AssetMissingError, ExternalToolError, ProbeError
from narrated_video.tools.process import run_tool

logger = structlog.get_logger()


def parse_duration(output: str) -> float:
    """Parse ffprobe's single-value duration output into positive seconds."""
    text = output.strip().splitlines()[0].strip() if output.strip() else ""
    try:
        value = float(text)
    except ValueError:
        raise ProbeError(f"Unparseable duration from ffprobe: {text!r}") from None
    if not math.isfinite(value) or value <= 0:
        raise ProbeError(f"Non-positive duration from ffprobe: {text!r}")
    return value


async def probe_duration(audio_path: str, config: Settings | None = None) -> float:
    """Return the duration of *audio_path* in seconds.

    Never guesses: any failure raises ``ProbeError`` (or ``AssetMissingError``
    when the file is absent) and the job must abort.
    """
    config = config or default_settings
    if not os.path.isfile(audio_path):
        raise AssetMissingError(audio_path)

    try:
        result = await run_tool(
            [
                config.ffprobe_path,
                "-v", "error",
                "-show_entries", "format=duration",
                "-of", "default=noprint_wrappers=1:nokey=1",
                audio_path,
            ],
            stage="probe",
        )
    except ExternalToolError as exc:
        raise ProbeError(f"ffprobe failed for {audio_path}: {exc.stderr.strip()[-300:]}") from exc

    duration = parse_duration(result.stdout)
    logger.info("probe.done", audio_path=audio_path, duration=duration)
    return duration


async def inspect_image(image_path: str, config: Settings | None = None) -> tuple[int, int]:
    """Check that *image_path* exists and decodes; return ``(width, height)``."""
    config = config or default_settings
    if not os.path.isfile(image_path):
        raise AssetMissingError(image_path)

    try:
        result = await run_tool(
            [
                config.ffprobe_path,
                "-v", "error",
                "-select_streams", "v:0",
                "-show_entries", "stream=width,height",
                "-of", "csv=s=x:p=0",
                image_path,
            ],
            stage="inspect_image",
        )
    except ExternalToolError as exc:
        raise AssetCorruptError(image_path) from exc

    try:
        w_str, h_str = result.stdout.strip().split("x")[:2]
        width, height = int(w_str), int(h_str)
    except ValueError:
        raise AssetCorruptError(image_path) from None
    if width <= 0 or height <= 0:
        raise AssetCorruptError(image_path)
    return width, height
