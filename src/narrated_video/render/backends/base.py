"""Render backend contract shared by every encoding strategy."""

from __future__ import annotations

import shutil
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel

from narrated_video.config import Settings, settings as default_settings
from narrated_video.errors import DependencyUnavailableError
from narrated_video.models.timeline import VisualSlot
from narrated_video.render.overlay import OverlayInstruction
from narrated_video.render.workspace import JobWorkspace


class RenderRequest(BaseModel):
    """Inputs of a render, identical for every backend.

    ``slots`` and ``overlays`` already carry the final timing; a backend may
    drop cosmetic effects but must not move anything on the timeline.
    """

    job_id: str
    slots: list[VisualSlot]
    audio_path: str
    overlays: list[OverlayInstruction]
    total_duration: float
    output_path: str
    workspace_dir: str

    @property
    def workspace(self) -> JobWorkspace:
        root = Path(self.workspace_dir)
        return JobWorkspace(root.parent, root.name)


class RenderBackend(ABC):
    """One strategy for driving the encoder to produce the final MP4."""

    name: str = ""

    def __init__(self, config: Settings | None = None):
        self.config = config or default_settings

    async def ensure_available(self) -> None:
        """Raise ``DependencyUnavailableError`` if this backend cannot run here."""
        require_executable(self.config.ffmpeg_path)

    @abstractmethod
    async def render(self, request: RenderRequest) -> str:
        """Render *request* to ``request.output_path`` and return that path."""


def require_executable(path: str) -> None:
    if shutil.which(path) is None:
        raise DependencyUnavailableError(f"{path} is not installed or not on PATH")
