"""Visual timeline: equal partition of the narration across images.

Every image gets the same share of the narration, regardless of how long
its own audio segment turned out to be. Effects are assigned by index so
the same image count always yields the same timeline.
"""

from __future__ import annotations

import os
from typing import Sequence

import structlog

from narrated_video.errors import AssetMissingError
from narrated_video.models.timeline import EFFECT_ORDER, EffectPreset, VisualSlot

logger = structlog.get_logger()

ZOOM_AMOUNT = 0.1


def effect_for_index(index: int) -> EffectPreset:
    return EFFECT_ORDER[index % len(EFFECT_ORDER)]


def effect_transform(effect: EffectPreset, progress: float) -> tuple[float, float, float]:
    """Return ``(zoom, x_frac, y_frac)`` for *effect* at *progress* in ``[0, 1]``.

    ``zoom`` >= 1 scales the frame; ``x_frac``/``y_frac`` place the visible
    window inside the spare area (0 = left/top, 1 = right/bottom).
    """
    p = min(max(progress, 0.0), 1.0)
    if effect == EffectPreset.ZOOM_IN:
        return 1.0 + ZOOM_AMOUNT * p, 0.5, 0.5
    if effect == EffectPreset.ZOOM_OUT:
        return 1.0 + ZOOM_AMOUNT * (1.0 - p), 0.5, 0.5
    if effect == EffectPreset.PAN_RIGHT:
        return 1.0 + ZOOM_AMOUNT, p, 0.5
    if effect == EffectPreset.PAN_LEFT:
        return 1.0 + ZOOM_AMOUNT, 1.0 - p, 0.5
    return 1.0, 0.5, 0.5


def compose_slots(
    image_paths: Sequence[str],
    total_duration: float,
    start_offset: float = 0.0,
) -> list[VisualSlot]:
    """Partition ``[start_offset, start_offset + total_duration)`` across *image_paths*.

    Raises:
        AssetMissingError: An image does not exist. Nothing is skipped, since a
            dropped image would shift every later slot against the captions.
    """
    if not image_paths:
        raise ValueError("compose_slots needs at least one image")
    if total_duration <= 0:
        raise ValueError(f"total_duration must be positive, got {total_duration}")

    for p in image_paths:
        if not os.path.isfile(p):
            raise AssetMissingError(p)

    count = len(image_paths)
    step = total_duration / count
    slots = []
    for i, path in enumerate(image_paths):
        start = start_offset + i * step
        end = start_offset + total_duration if i == count - 1 else start + step
        slots.append(
            VisualSlot(
                image_index=i,
                image_path=path,
                start_time=start,
                end_time=end,
                effect=effect_for_index(i),
            )
        )

    logger.info(
        "timeline.composed",
        images=count,
        total_duration=total_duration,
        slot_duration=step,
        start_offset=start_offset,
    )
    return slots


def title_slot(image_path: str, duration: float) -> VisualSlot:
    return VisualSlot(
        image_index=-1,
        image_path=image_path,
        start_time=0.0,
        end_time=duration,
        effect=EffectPreset.STABLE,
    )


def crossfade_padding(slots: Sequence[VisualSlot], crossfade: float) -> list[tuple[float, float]]:
    """Per-slot ``(lead, tail)`` overlap so cross-fades centre on slot boundaries.

    Slot *i* is rendered from ``start - lead`` to ``end + tail``. The first
    slot has no lead and the last no tail, so the video length is unchanged.
    Returns all zeros when any slot is too short to hold a transition.
    """
    if crossfade <= 0 or len(slots) < 2 or any(s.duration <= crossfade for s in slots):
        return [(0.0, 0.0)] * len(slots)
    half = crossfade / 2
    last = len(slots) - 1
    return [(half if i > 0 else 0.0, half if i < last else 0.0) for i in range(len(slots))]
