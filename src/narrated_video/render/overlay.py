"""Caption overlay: sanitized, time-gated draw instructions for burned-in text."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Sequence

import structlog

from narrated_video.config import COLORS, DEFAULT_COLOR, DEFAULT_FONT, FONTS
from narrated_video.models.timeline import CaptionEntry, TextStyle

logger = structlog.get_logger()

_TAG_RE = re.compile(r"</?[A-Za-z][^<>]*>")
_QUOTE_RE = re.compile(r"""['"`\\:]""")
_UNSAFE_RE = re.compile(r"[^\w\s.,!?-]")
_PUNCT_RUN_RE = re.compile(r"[.,!?-]{2,}")
_SPACE_RE = re.compile(r"\s+")


def sanitize_caption_text(text: str, max_length: int | None = None) -> str:
    """Reduce *text* to characters that are safe inside a drawtext argument.

    Markup tags, quotes and colons are dropped, then anything outside word
    characters, whitespace and ``. , ! ? -``. Runs of two or more punctuation
    marks are removed outright. Whitespace is collapsed and the result cut
    to *max_length*. Applying it twice gives the same result as once.
    """
    cleaned = _TAG_RE.sub(" ", text)
    cleaned = _QUOTE_RE.sub("", cleaned)
    cleaned = _UNSAFE_RE.sub("", cleaned)
    cleaned = _PUNCT_RUN_RE.sub("", cleaned)
    cleaned = _SPACE_RE.sub(" ", cleaned).strip()
    if max_length is not None and len(cleaned) > max_length:
        cleaned = cleaned[:max_length].rstrip()
    return cleaned


def resolve_font(key: str | None) -> str:
    """Font key -> TTF path, falling back to the default bold sans-serif."""
    if key and key in FONTS:
        return FONTS[key]
    if key:
        logger.warning("overlay.unknown_font", font=key, fallback=DEFAULT_FONT)
    return FONTS[DEFAULT_FONT]


def resolve_color(key: str | None) -> str:
    """Colour name -> ``#RRGGBB``, falling back to yellow."""
    if key and key.lower() in COLORS:
        return COLORS[key.lower()]
    if key:
        logger.warning("overlay.unknown_color", color=key, fallback=DEFAULT_COLOR)
    return COLORS[DEFAULT_COLOR]


@dataclass(frozen=True)
class OverlayInstruction:
    """One line of text visible for ``start <= t < end``."""

    text: str
    start: float
    end: float
    font_path: str
    color: str  # "#RRGGBB"

    def is_visible(self, t: float) -> bool:
        return self.start <= t < self.end


def build_overlay_instructions(
    display_lines: Sequence[CaptionEntry],
    style: TextStyle,
    max_chars: int,
) -> list[OverlayInstruction]:
    """Turn display caption lines into draw instructions.

    Lines that sanitize to nothing are skipped; an empty input yields an
    empty list, which renderers treat as captions disabled.
    """
    font_path = resolve_font(style.font)
    color = resolve_color(style.color)
    instructions = []
    for line in display_lines:
        text = sanitize_caption_text(line.text, max_length=max_chars)
        if not text or line.end_time <= line.start_time:
            continue
        instructions.append(
            OverlayInstruction(
                text=text,
                start=line.start_time,
                end=line.end_time,
                font_path=font_path,
                color=color,
            )
        )
    return instructions
