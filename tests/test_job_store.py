"""In-memory job store and credit ledger."""

from __future__ import annotations

import pytest

from narrated_video.errors import ErrorKind, JobFailure
from narrated_video.memory.credit_ledger import CreditLedger, InsufficientCreditsError
from narrated_video.memory.job_store import JobRecord, JobStore
from narrated_video.models.job import ExternalStatus, JobStatus, RenderResult
from narrated_video.models.timeline import CaptionEntry


@pytest.fixture
async def store() -> JobStore:
    store = JobStore()
    await store.create(JobRecord(job_id="j1", user_id="u1", topic="volcanoes"))
    return store


async def test_report_maps_compile_statuses(store):
    await store.report("j1", JobStatus.RENDERING, None)

    record = await store.get("j1")
    assert record.status == ExternalStatus.COMPILING
    assert record.stage == "rendering"


async def test_report_failure_keeps_detail(store):
    failure = JobFailure(kind=ErrorKind.TIMEOUT, message="render took too long", retryable=True)
    await store.report("j1", JobStatus.TIMED_OUT, failure)

    record = await store.get("j1")
    assert record.status == ExternalStatus.FAILED
    assert record.stage == "timed_out"
    assert record.error_kind == "timeout"
    assert record.retryable


async def test_save_result_completes_job(store):
    caption = CaptionEntry(text="Lava flows.", start_time=0.0, end_time=4.0)
    result = RenderResult(
        job_id="j1", output_path="/out/j1/video.mp4", duration_sec=4.0, backend="filtergraph", captions=[caption]
    )

    record = await store.save_result("j1", result)

    assert record.status == ExternalStatus.COMPLETED
    assert record.captions == [caption]
    assert record.backend == "filtergraph"


async def test_reset_only_from_failed(store):
    with pytest.raises(ValueError):
        await store.reset("j1")

    failure = JobFailure(kind=ErrorKind.EXTERNAL_TOOL, message="ffmpeg exited with code 1", retryable=False)
    await store.set_status("j1", ExternalStatus.FAILED, failure=failure)
    record = await store.reset("j1")

    assert record.status == ExternalStatus.PENDING
    assert record.attempt == 2
    assert record.error_message is None


async def test_unknown_job(store):
    assert await store.get("nope") is None
    with pytest.raises(KeyError):
        await store.set_status("nope", ExternalStatus.FAILED)


async def test_subscribers_receive_current_and_later_events(store):
    queue = store.subscribe("j1")
    await store.report("j1", JobStatus.PROBING, None)

    first = queue.get_nowait()
    second = queue.get_nowait()
    assert first["status"] == "pending"
    assert (second["status"], second["stage"]) == ("compiling", "probing")

    store.unsubscribe("j1", queue)
    await store.report("j1", JobStatus.ASSEMBLING_AUDIO, None)
    assert queue.empty()


async def test_ledger_charges_and_refuses():
    ledger = CreditLedger(starting_balance=10)

    assert await ledger.charge("u1", 4) == 6
    with pytest.raises(InsufficientCreditsError) as exc_info:
        await ledger.charge("u1", 7)
    assert exc_info.value.balance == 6
    assert await ledger.get_balance("u1") == 6
    assert await ledger.refund("u1", 4) == 10


async def test_ledger_rejects_negative_cost():
    with pytest.raises(ValueError):
        await CreditLedger(starting_balance=10).charge("u1", -1)
