"""Pydantic models for the caption and visual timelines."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class EffectPreset(str, Enum):
    ZOOM_IN = "zoom_in"
    ZOOM_OUT = "zoom_out"
    PAN_RIGHT = "pan_right"
    PAN_LEFT = "pan_left"
    STABLE = "stable"


# Assignment order: slot i gets EFFECT_ORDER[i % len(EFFECT_ORDER)].
EFFECT_ORDER: tuple[EffectPreset, ...] = tuple(EffectPreset)


class CaptionEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    start_time: float = Field(ge=0)
    end_time: float = Field(ge=0)

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


class VisualSlot(BaseModel):
    """A time window of the final video showing one image with one effect.

    ``image_index`` is -1 for the title card.
    """

    model_config = ConfigDict(frozen=True)

    image_index: int = Field(ge=-1)
    image_path: str
    start_time: float = Field(ge=0)
    end_time: float = Field(gt=0)
    effect: EffectPreset

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def is_title(self) -> bool:
        return self.image_index < 0


class TextStyle(BaseModel):
    """Caption styling keys as chosen by the user; resolved via the config tables."""

    font: str = "dejavu-sans-bold"
    color: str = "yellow"
