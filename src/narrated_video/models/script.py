"""Pydantic models for script data."""

from pydantic import BaseModel, ConfigDict, Field


class ScriptSegment(BaseModel):
    """One narrated unit of the script; index-aligned with its image and audio."""

    model_config = ConfigDict(frozen=True)

    text: str
    image_prompt: str
    planned_duration: float = Field(gt=0)


# ---------------------------------------------------------------------------
# LLM Structured Output models (used by scriptwriter node)
# ---------------------------------------------------------------------------


class SegmentOutput(BaseModel):
    """A single script segment as returned by the LLM."""

    text: str = Field(
        description="Narration text for this segment, at most two punchy sentences"
    )
    image_prompt: str = Field(
        description="Detailed English description of the image to generate for this segment"
    )
    duration: float = Field(gt=0, description="Estimated narration time in seconds")


class ScriptGenerationResult(BaseModel):
    """Full script returned by the script LLM."""

    segments: list[SegmentOutput] = Field(
        description="Script segments in narration order", min_length=1
    )

    def to_segments(self) -> list[ScriptSegment]:
        return [
            ScriptSegment(
                text=s.text.strip(),
                image_prompt=s.image_prompt.strip(),
                planned_duration=s.duration,
            )
            for s in self.segments
        ]
