"""Per-run collaborators passed to nodes through ``config["configurable"]``.

Keys: ``settings`` (a ``Settings``), ``job_store`` (a ``JobStore``) and
``compiler`` (a ``VideoCompiler``). Missing keys fall back to the
process-wide singletons.
"""

from __future__ import annotations

from langchain_core.runnables import RunnableConfig

from narrated_video.config import Settings, settings as default_settings
from narrated_video.memory.job_store import JobStore, get_job_store
from narrated_video.render.orchestrator import VideoCompiler


def _configurable(config: RunnableConfig | None) -> dict:
    return (config or {}).get("configurable", {}) or {}


def settings_from(config: RunnableConfig | None) -> Settings:
    return _configurable(config).get("settings") or default_settings


def job_store_from(config: RunnableConfig | None) -> JobStore:
    return _configurable(config).get("job_store") or get_job_store()


def compiler_from(config: RunnableConfig | None) -> VideoCompiler:
    compiler = _configurable(config).get("compiler")
    if compiler is None:
        compiler = VideoCompiler(config=settings_from(config), reporter=job_store_from(config))
    return compiler
