"""Per-job temporary workspace, namespaced by job id."""

from __future__ import annotations

import shutil
from pathlib import Path

import structlog

logger = structlog.get_logger()


class JobWorkspace:
    """A directory ``<base_dir>/<job_id>`` holding every intermediate file of a job.

    Concurrent jobs never share a workspace, so no locking is needed.
    """

    def __init__(self, base_dir: str | Path, job_id: str):
        self.job_id = job_id
        self.root = Path(base_dir) / job_id

    def create(self) -> "JobWorkspace":
        self.root.mkdir(parents=True, exist_ok=True)
        return self

    def path(self, name: str) -> str:
        return str(self.root / name)

    def remove_files(self, paths: list[str]) -> None:
        """Best-effort deletion of individual files."""
        for p in paths:
            try:
                Path(p).unlink(missing_ok=True)
            except OSError:
                logger.warning("workspace.unlink_failed", job_id=self.job_id, path=p, exc_info=True)

    def cleanup(self) -> None:
        """Remove the whole workspace. Failures are logged, never raised."""
        if not self.root.exists():
            return
        try:
            shutil.rmtree(self.root)
        except OSError:
            logger.warning("workspace.cleanup_failed", job_id=self.job_id, root=str(self.root), exc_info=True)
            return
        logger.info("workspace.cleaned", job_id=self.job_id)

    def __enter__(self) -> "JobWorkspace":
        return self.create()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()
