"""Narration assembly: normalize TTS clips and concatenate them into one track."""

from __future__ import annotations

import os
from pathlib import Path

import structlog

from narrated_video.config import Settings, settings as default_settings
from narrated_video.errors import AssetMissingError, AudioAssemblyError
from narrated_video.render.workspace import JobWorkspace
from narrated_video.tools.process import run_tool

logger = structlog.get_logger()

NARRATION_FILENAME = "narration.wav"


def write_concat_list(paths: list[str], list_path: str) -> str:
    """Write an ffmpeg concat-demuxer list file referencing *paths* in order."""
    lines = []
    for p in paths:
        escaped = str(Path(p).resolve()).replace("'", "'\\''")
        lines.append(f"file '{escaped}'")
    Path(list_path).write_text("\n".join(lines) + "\n", encoding="utf-8")
    return list_path


def _pcm_args(config: Settings) -> list[str]:
    return [
        "-acodec", "pcm_s16le",
        "-ar", str(config.audio_sample_rate),
        "-ac", str(config.audio_channels),
    ]


async def normalize_clip(input_path: str, output_path: str, config: Settings) -> str:
    """Re-encode *input_path* to the canonical PCM format."""
    await run_tool(
        [config.ffmpeg_path, "-y", "-i", input_path, "-vn", *_pcm_args(config), output_path],
        stage="normalize_audio",
        error_cls=AudioAssemblyError,
    )
    return output_path


async def make_silence(duration: float, output_path: str, config: Settings) -> str:
    layout = "mono" if config.audio_channels == 1 else "stereo"
    await run_tool(
        [
            config.ffmpeg_path, "-y",
            "-f", "lavfi",
            "-i", f"anullsrc=r={config.audio_sample_rate}:cl={layout}",
            "-t", f"{duration:.3f}",
            *_pcm_args(config),
            output_path,
        ],
        stage="silence",
        error_cls=AudioAssemblyError,
    )
    return output_path


async def assemble_audio(
    audio_paths: list[str],
    workspace: JobWorkspace,
    lead_in_sec: float = 0.0,
    config: Settings | None = None,
) -> str:
    """Concatenate *audio_paths* (in order) into a single canonical WAV file.

    Each clip is first normalized to mono 16-bit PCM at 44.1 kHz so the
    concat demuxer can join them without re-encoding. A single clip with no
    lead-in is only normalized. *lead_in_sec* prepends silence (title card).

    Returns the path of the narration track inside *workspace*.

    Raises:
        AssetMissingError: An input clip does not exist.
        AudioAssemblyError: ffmpeg failed; files written by this step are removed first.
    """
    config = config or default_settings
    if not audio_paths:
        raise ValueError("assemble_audio needs at least one clip")
    for p in audio_paths:
        if not os.path.isfile(p):
            raise AssetMissingError(p)

    output_path = workspace.path(NARRATION_FILENAME)
    created: list[str] = []

    try:
        if len(audio_paths) == 1 and lead_in_sec <= 0:
            created.append(output_path)
            await normalize_clip(audio_paths[0], output_path, config)
            logger.info("audio_assembler.normalized_single", output_path=output_path)
            return output_path

        parts: list[str] = []
        if lead_in_sec > 0:
            silence_path = workspace.path("lead_in_silence.wav")
            created.append(silence_path)
            parts.append(await make_silence(lead_in_sec, silence_path, config))

        for i, p in enumerate(audio_paths):
            norm_path = workspace.path(f"norm_{i}.wav")
            created.append(norm_path)
            parts.append(await normalize_clip(p, norm_path, config))
            logger.debug("audio_assembler.normalize", index=i, source=p)

        list_path = workspace.path("narration_list.txt")
        created.append(list_path)
        write_concat_list(parts, list_path)

        created.append(output_path)
        await run_tool(
            [
                config.ffmpeg_path, "-y",
                "-f", "concat", "-safe", "0",
                "-i", list_path,
                "-c", "copy",
                output_path,
            ],
            stage="concat_audio",
            error_cls=AudioAssemblyError,
        )
    except BaseException:
        workspace.remove_files(created)
        raise

    # Intermediates are no longer needed once the narration exists.
    workspace.remove_files([p for p in created if p != output_path])
    logger.info(
        "audio_assembler.done",
        clips=len(audio_paths),
        lead_in_sec=lead_in_sec,
        output_path=output_path,
    )
    return output_path
