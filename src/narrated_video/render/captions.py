"""Caption timeline: contiguous caption entries from measured narration durations."""

from __future__ import annotations

import textwrap
from typing import Sequence

import pysrt
import structlog

from narrated_video.models.script import ScriptSegment
from narrated_video.models.timeline import CaptionEntry

logger = structlog.get_logger()


def build_captions(
    segments: Sequence[ScriptSegment],
    measured_durations: Sequence[float],
    start_offset: float = 0.0,
) -> list[CaptionEntry]:
    """Fold segments into back-to-back caption entries.

    Entry *i* spans ``[t_i, t_i + measured_durations[i])`` where ``t_0`` is
    *start_offset* (the title card length, if any). Planned script durations
    are never consulted.
    """
    if len(segments) != len(measured_durations):
        raise ValueError(
            f"{len(segments)} segments but {len(measured_durations)} measured durations"
        )

    entries: list[CaptionEntry] = []
    current = start_offset
    for segment, duration in zip(segments, measured_durations):
        end = current + duration
        entries.append(CaptionEntry(text=segment.text, start_time=current, end_time=end))
        current = end
    return entries


def wrap_caption(text: str, max_chars: int) -> list[str]:
    """Split *text* at word boundaries into lines of at most *max_chars*."""
    return textwrap.wrap(
        " ".join(text.split()),
        width=max_chars,
        break_long_words=True,
        break_on_hyphens=False,
    )


def split_display_lines(entries: Sequence[CaptionEntry], max_chars: int) -> list[CaptionEntry]:
    """Expand each entry into one-line display captions.

    The entry's window is divided evenly among its lines; the last line ends
    exactly at the entry's end so display lines stay contiguous.
    """
    lines_out: list[CaptionEntry] = []
    for entry in entries:
        lines = wrap_caption(entry.text, max_chars)
        if not lines:
            continue
        step = entry.duration / len(lines)
        for i, line in enumerate(lines):
            start = entry.start_time + i * step
            end = entry.end_time if i == len(lines) - 1 else start + step
            lines_out.append(CaptionEntry(text=line, start_time=start, end_time=end))
    return lines_out


def write_srt(entries: Sequence[CaptionEntry], output_path: str) -> str:
    """Write *entries* as a SubRip file for client-side caption rendering."""
    srt_file = pysrt.SubRipFile()
    for idx, entry in enumerate(entries, start=1):
        srt_file.append(
            pysrt.SubRipItem(
                index=idx,
                start=pysrt.SubRipTime.from_ordinal(round(entry.start_time * 1000)),
                end=pysrt.SubRipTime.from_ordinal(round(entry.end_time * 1000)),
                text=entry.text,
            )
        )
    srt_file.save(output_path, encoding="utf-8")
    logger.info("captions.srt_written", output_path=output_path, entries=len(entries))
    return output_path
