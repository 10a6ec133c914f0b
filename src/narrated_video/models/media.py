"""Pydantic models for media assets."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class AssetKind(str, Enum):
    IMAGE = "image"
    AUDIO = "audio"


class MediaAsset(BaseModel):
    kind: AssetKind
    locator: str  # local path or URL
    index: int = Field(ge=0)


class MeasuredAudioSegment(BaseModel):
    """An audio clip whose duration was measured by probing the file."""

    model_config = ConfigDict(frozen=True)

    path: str
    measured_duration: float = Field(gt=0)
