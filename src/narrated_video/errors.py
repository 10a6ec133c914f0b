"""Error taxonomy shared by every stage of the compilation pipeline.

Each error carries a ``kind`` so callers can tell retryable conditions
(timeouts, missing optional dependencies) from bad input.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

_STDERR_TAIL_CHARS = 2000


class ErrorKind(str, Enum):
    ASSET_MISSING = "asset_missing"
    ASSET_CORRUPT = "asset_corrupt"
    PROBE = "probe"
    EXTERNAL_TOOL = "external_tool"
    TIMEOUT = "timeout"
    DEPENDENCY_UNAVAILABLE = "dependency_unavailable"
    INTERNAL = "internal"


RETRYABLE_KINDS = frozenset({ErrorKind.TIMEOUT, ErrorKind.DEPENDENCY_UNAVAILABLE})


class VideoPipelineError(Exception):
    kind: ErrorKind = ErrorKind.INTERNAL

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS


class AssetError(VideoPipelineError):
    """An image or audio asset cannot be used."""

    def __init__(self, path: str, message: str | None = None):
        self.path = str(path)
        super().__init__(message or f"{self.kind.value}: {self.path}")


class AssetMissingError(AssetError):
    kind = ErrorKind.ASSET_MISSING

    def __init__(self, path: str, message: str | None = None):
        super().__init__(path, message or f"Asset file does not exist: {path}")


class AssetCorruptError(AssetError):
    kind = ErrorKind.ASSET_CORRUPT

    def __init__(self, path: str, message: str | None = None):
        super().__init__(path, message or f"Asset file cannot be decoded: {path}")


class ProbeError(VideoPipelineError):
    kind = ErrorKind.PROBE


class ExternalToolError(VideoPipelineError):
    """A subprocess exited non-zero. ``stderr`` holds the tail of its output."""

    kind = ErrorKind.EXTERNAL_TOOL

    def __init__(self, tool: str, returncode: int | None, stderr: str = "", stage: str = ""):
        self.tool = tool
        self.returncode = returncode
        self.stderr = stderr[-_STDERR_TAIL_CHARS:]
        self.stage = stage
        label = f"{stage}: " if stage else ""
        message = f"{label}{tool} exited with code {returncode}"
        if self.stderr.strip():
            message = f"{message}\n{self.stderr.strip()}"
        super().__init__(message)


class AudioAssemblyError(ExternalToolError):
    pass


class JobTimeoutError(VideoPipelineError):
    kind = ErrorKind.TIMEOUT


class DependencyUnavailableError(VideoPipelineError):
    kind = ErrorKind.DEPENDENCY_UNAVAILABLE


class InvalidTransitionError(ValueError):
    pass


class JobFailure(BaseModel):
    """Structured failure reported for a job that did not complete."""

    kind: ErrorKind
    message: str
    retryable: bool

    @classmethod
    def from_exception(cls, exc: BaseException) -> "JobFailure":
        if isinstance(exc, VideoPipelineError):
            return cls(kind=exc.kind, message=str(exc), retryable=exc.retryable)
        return cls(
            kind=ErrorKind.INTERNAL,
            message=str(exc) or exc.__class__.__name__,
            retryable=False,
        )
