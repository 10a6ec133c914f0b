"""FastAPI dependency injection: graph, checkpointer, job store, credit ledger."""

from __future__ import annotations

from functools import lru_cache

from langgraph.checkpoint.base import BaseCheckpointSaver
from langgraph.checkpoint.memory import InMemorySaver

from narrated_video.graph.builder import build_graph
from narrated_video.memory.credit_ledger import CreditLedger, get_credit_ledger
from narrated_video.memory.job_store import JobStore, get_job_store


@lru_cache(maxsize=1)
def get_checkpointer() -> BaseCheckpointSaver:
    """Return a singleton checkpointer.

    Holds the state of jobs paused in review so the compile request can
    resume them. A retry starts a new thread and re-runs from scratch.
    """
    return InMemorySaver()


@lru_cache(maxsize=1)
def get_compiled_graph():
    """Return the compiled generation graph with checkpointer."""
    return build_graph(checkpointer=get_checkpointer())


def job_store() -> JobStore:
    return get_job_store()


def credit_ledger() -> CreditLedger:
    return get_credit_ledger()
