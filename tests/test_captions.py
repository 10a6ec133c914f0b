"""Caption timeline construction, display-line splitting and SRT export."""

from __future__ import annotations

import pysrt
import pytest

from narrated_video.models.script import ScriptSegment
from narrated_video.models.timeline import CaptionEntry
from narrated_video.render.captions import build_captions, split_display_lines, wrap_caption, write_srt


def segments(*texts: str) -> list[ScriptSegment]:
    return [ScriptSegment(text=t, image_prompt="p", planned_duration=10.0) for t in texts]


def test_entries_follow_measured_not_planned_durations():
    entries = build_captions(segments("One.", "Two.", "Three."), [9.2, 11.0, 9.8])

    assert [e.text for e in entries] == ["One.", "Two.", "Three."]
    assert entries[0].start_time == 0.0
    assert entries[0].end_time == pytest.approx(9.2)
    assert entries[1].end_time == pytest.approx(20.2)
    assert entries[2].end_time == pytest.approx(30.0)


def test_entries_are_contiguous():
    entries = build_captions(segments("a", "b", "c", "d"), [1.5, 2.25, 0.75, 3.0])
    for prev, nxt in zip(entries, entries[1:]):
        assert nxt.start_time == prev.end_time


def test_start_offset_shifts_every_entry():
    entries = build_captions(segments("a", "b"), [4.0, 6.0], start_offset=2.0)
    assert [(e.start_time, e.end_time) for e in entries] == [(2.0, 6.0), (6.0, 12.0)]


def test_empty_input_gives_empty_timeline():
    assert build_captions([], []) == []


def test_length_mismatch_is_rejected():
    with pytest.raises(ValueError):
        build_captions(segments("a", "b"), [1.0])


def test_wrap_caption_respects_width():
    text = "Water evaporates from oceans, condenses into clouds and falls back as rain over the land."
    lines = wrap_caption(text, 30)
    assert len(lines) > 1
    assert all(len(line) <= 30 for line in lines)
    assert " ".join(lines) == text


def test_split_display_lines_divides_window_evenly():
    entry = CaptionEntry(text="alpha beta gamma delta", start_time=3.0, end_time=9.0)

    lines = split_display_lines([entry], max_chars=11)

    assert [line.text for line in lines] == ["alpha beta", "gamma delta"]
    assert (lines[0].start_time, lines[0].end_time) == (3.0, 6.0)
    assert (lines[1].start_time, lines[1].end_time) == (6.0, 9.0)


def test_split_display_lines_skips_blank_entries():
    entries = [
        CaptionEntry(text="   ", start_time=0.0, end_time=1.0),
        CaptionEntry(text="short", start_time=1.0, end_time=2.0),
    ]
    assert [line.text for line in split_display_lines(entries, 55)] == ["short"]


def test_write_srt_round_trips_through_pysrt(tmp_path):
    entries = build_captions(segments("First line.", "Second line."), [9.2, 11.0])
    path = write_srt(entries, str(tmp_path / "video.srt"))

    subs = pysrt.open(path, encoding="utf-8")
    assert len(subs) == 2
    assert subs[0].index == 1
    assert subs[0].text == "First line."
    assert subs[0].end.ordinal == 9200
    assert subs[1].start.ordinal == 9200
    assert subs[1].end.ordinal == 20200
