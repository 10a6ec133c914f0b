"""Async subprocess runner used for every external tool invocation."""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from pathlib import Path

import structlog

from narrated_video.errors import DependencyUnavailableError, ExternalToolError

logger = structlog.get_logger()


@dataclass
class ToolResult:
    returncode: int
    stdout: str
    stderr: str


async def run_tool(
    args: list[str],
    *,
    stage: str = "",
    cwd: str | None = None,
    error_cls: type[ExternalToolError] = ExternalToolError,
) -> ToolResult:
    """Run *args* and wait for its exit code and captured output.

    Raises:
        DependencyUnavailableError: The executable cannot be found.
        ExternalToolError: (or *error_cls*) The process exited non-zero.

    If the awaiting task is cancelled (e.g. the job timeout fires) the child
    is killed and reaped before the cancellation propagates.
    """
    tool = Path(args[0]).name
    started = time.monotonic()
    try:
        proc = await asyncio.create_subprocess_exec(
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
        )
    except FileNotFoundError as exc:
        raise DependencyUnavailableError(f"{tool} is not installed or not on PATH") from exc

    logger.debug("process.spawned", tool=tool, stage=stage, pid=proc.pid)
    try:
        stdout, stderr = await proc.communicate()
    except asyncio.CancelledError:
        if proc.returncode is None:
            proc.kill()
            await proc.wait()
        logger.warning("process.killed", tool=tool, stage=stage, pid=proc.pid)
        raise

    result = ToolResult(
        returncode=proc.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
    elapsed = round(time.monotonic() - started, 3)

    if result.returncode != 0:
        logger.error(
            "process.failed",
            tool=tool,
            stage=stage,
            returncode=result.returncode,
            stderr=result.stderr[-300:],
            elapsed=elapsed,
        )
        raise error_cls(tool, result.returncode, result.stderr, stage=stage)

    logger.debug("process.done", tool=tool, stage=stage, elapsed=elapsed)
    return result
