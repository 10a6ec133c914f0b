"""Shared fixtures: isolated settings, asset files and fake pipeline collaborators."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path

import pytest

from narrated_video.config import Settings
from narrated_video.errors import DependencyUnavailableError
from narrated_video.models.job import JobStatus
from narrated_video.render.backends.base import RenderBackend, RenderRequest


@pytest.fixture
def config(tmp_path: Path) -> Settings:
    """Settings rooted in the test's temporary directory."""
    return Settings(
        temp_base_dir=str(tmp_path / "temp"),
        output_base_dir=str(tmp_path / "output"),
        job_timeout_sec=5.0,
        title_card_sec=0.0,
        crossfade_sec=0.5,
        video_fps=25,
        caption_line_chars=55,
    )


def write_file(path: Path, content: bytes = b"data") -> str:
    """Create *path* (and its parents) and return it as a string."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return str(path)


@pytest.fixture
def make_file(tmp_path: Path):
    def _make(name: str, content: bytes = b"data") -> str:
        return write_file(tmp_path / "assets" / name, content)

    return _make


class FakeBackend(RenderBackend):
    """Backend double that writes a stub MP4 or fails on demand."""

    def __init__(
        self,
        name: str = "fake",
        config: Settings | None = None,
        *,
        error: Exception | None = None,
        unavailable: bool = False,
        delay: float = 0.0,
        partial_output: bool = False,
    ):
        super().__init__(config)
        self.name = name
        self.error = error
        self.unavailable = unavailable
        self.delay = delay
        self.partial_output = partial_output
        self.requests: list[RenderRequest] = []

    async def ensure_available(self) -> None:
        if self.unavailable:
            raise DependencyUnavailableError(f"{self.name} prerequisites are missing")

    async def render(self, request: RenderRequest) -> str:
        self.requests.append(request)
        if self.partial_output:
            Path(request.output_path).write_bytes(b"partial")
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        Path(request.output_path).write_bytes(b"mp4")
        return request.output_path


class RecordingReporter:
    """Job persistence double recording every reported status."""

    def __init__(self):
        self.statuses: list[JobStatus] = []
        self.failures = []

    async def report(self, job_id, status, failure) -> None:
        self.statuses.append(status)
        self.failures.append(failure)


def fake_prober(durations: dict[str, float], delay: float = 0.0):
    async def probe(path: str, config: Settings) -> float:
        if delay:
            await asyncio.sleep(delay)
        return durations[path]

    return probe


async def fake_assembler(audio_paths, workspace, lead_in_sec: float = 0.0, config=None) -> str:
    path = workspace.path("narration.wav")
    Path(path).write_bytes(b"wav")
    return path


async def accept_image(path: str, config: Settings):
    return 1920, 1080


async def fake_title_card(topic: str, output_path: str, font_path: str, config: Settings) -> str:
    Path(output_path).write_bytes(b"png")
    return output_path


def workspace_exists(config: Settings, job_id: str) -> bool:
    return os.path.exists(os.path.join(config.temp_base_dir, job_id))
