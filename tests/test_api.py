"""HTTP surface with the background pipeline stubbed out."""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from narrated_video.api import routes
from narrated_video.api.dependencies import credit_ledger, job_store
from narrated_video.errors import ErrorKind, JobFailure
from narrated_video.memory.credit_ledger import CreditLedger
from narrated_video.memory.job_store import JobStore
from narrated_video.models.job import ExternalStatus, RenderResult
from narrated_video.models.timeline import CaptionEntry


@pytest.fixture
def store() -> JobStore:
    return JobStore()


@pytest.fixture
def ledger() -> CreditLedger:
    return CreditLedger(starting_balance=10)


@pytest.fixture
def launched(monkeypatch) -> list[str]:
    """Job ids handed to the background pipeline."""
    started: list[str] = []

    async def fake_run_pipeline(job_id, store):
        started.append(job_id)

    monkeypatch.setattr(routes, "run_pipeline", fake_run_pipeline)
    return started


@pytest.fixture
def resumed(monkeypatch) -> list[tuple[str, dict]]:
    """(job id, edits) pairs handed to the background resume."""
    calls: list[tuple[str, dict]] = []

    async def fake_resume_pipeline(job_id, store, edits):
        calls.append((job_id, edits))

    monkeypatch.setattr(routes, "resume_pipeline", fake_resume_pipeline)
    return calls


@pytest.fixture
def client(store, ledger, launched, resumed) -> TestClient:
    app = FastAPI()
    app.include_router(routes.router)
    app.dependency_overrides[job_store] = lambda: store
    app.dependency_overrides[credit_ledger] = lambda: ledger
    return TestClient(app)


def create(client: TestClient, **overrides):
    body = {"user_id": "u1", "topic": "The water cycle", "duration_sec": 30, "cost": 4, **overrides}
    return client.post("/api/v1/videos", json=body)


def test_create_accepts_and_launches(client, store, ledger, launched):
    resp = create(client, font="dejavu-serif", captions_enabled=False)

    assert resp.status_code == 202
    job_id = resp.json()["job_id"]
    assert resp.json()["status"] == "pending"
    assert launched == [job_id]

    status = client.get(f"/api/v1/videos/{job_id}").json()
    assert status["status"] == "pending"
    assert status["attempt"] == 1


async def test_create_stores_replayable_params(client, store):
    job_id = create(client, title_card_sec=2, voice_style="casual").json()["job_id"]

    record = await store.get(job_id)
    assert record.cost == 4
    assert record.params["title_card_sec"] == 2
    assert record.params["voice_style"] == "casual"
    assert "user_id" not in record.params and "cost" not in record.params


async def test_create_charges_credits(client, ledger):
    create(client)
    assert await ledger.get_balance("u1") == 6


def test_insufficient_credits_is_402(client, launched):
    resp = create(client, cost=50)
    assert resp.status_code == 402
    assert launched == []


def test_invalid_request_is_422(client):
    assert create(client, topic="").status_code == 422
    assert create(client, duration_sec=5).status_code == 422


def test_unknown_job_is_404(client):
    assert client.get("/api/v1/videos/nope").status_code == 404
    assert client.get("/api/v1/videos/nope/captions").status_code == 404
    assert client.post("/api/v1/videos/nope/retry").status_code == 404
    assert client.get("/api/v1/videos/nope/stream").status_code == 404


async def test_captions_only_when_completed(client, store):
    job_id = create(client).json()["job_id"]
    assert client.get(f"/api/v1/videos/{job_id}/captions").status_code == 409

    caption = CaptionEntry(text="Water evaporates.", start_time=0.0, end_time=9.2)
    await store.save_result(
        job_id,
        RenderResult(
            job_id=job_id, output_path="/out/video.mp4", duration_sec=9.2, backend="filtergraph", captions=[caption]
        ),
    )

    resp = client.get(f"/api/v1/videos/{job_id}/captions")
    assert resp.status_code == 200
    assert resp.json()["captions"] == [{"text": "Water evaporates.", "start_time": 0.0, "end_time": 9.2}]
    assert client.get(f"/api/v1/videos/{job_id}").json()["backend"] == "filtergraph"


async def test_retry_failed_job(client, store, launched):
    job_id = create(client).json()["job_id"]
    assert client.post(f"/api/v1/videos/{job_id}/retry").status_code == 409

    failure = JobFailure(kind=ErrorKind.TIMEOUT, message="Job exceeded the 600s timeout", retryable=True)
    await store.set_status(job_id, ExternalStatus.FAILED, stage="timed_out", failure=failure)
    failed = client.get(f"/api/v1/videos/{job_id}").json()
    assert failed["error_kind"] == "timeout"
    assert failed["retryable"] is True

    resp = client.post(f"/api/v1/videos/{job_id}/retry")

    assert resp.status_code == 202
    assert resp.json() == {"job_id": job_id, "status": "pending", "attempt": 2}
    assert launched == [job_id, job_id]


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------

DRAFT = [
    {"text": "Water evaporates.", "image_prompt": "ocean under sun", "planned_duration": 10.0},
    {"text": "Clouds form.", "image_prompt": "white clouds", "planned_duration": 10.0},
]


async def paused_job(client, store, tmp_path) -> str:
    job_id = create(client, review=True).json()["job_id"]
    images = [str(tmp_path / "media" / f"image_{i}.png") for i in range(2)]
    await store.save_draft(job_id, segments=DRAFT, image_paths=images)
    await store.set_status(job_id, ExternalStatus.EDITING, stage="review")
    return job_id


async def test_review_flag_is_replayed(client, store):
    job_id = create(client, review=True).json()["job_id"]
    assert (await store.get(job_id)).params["review"] is True


async def test_edits_need_editing_status(client, store):
    job_id = create(client).json()["job_id"]

    assert client.put(f"/api/v1/videos/{job_id}/script", json={"segments": [{"text": "x"}]}).status_code == 409
    assert client.post(f"/api/v1/videos/{job_id}/regenerate-image/0").status_code == 409
    assert client.post(f"/api/v1/videos/{job_id}/compile").status_code == 409
    assert client.put("/api/v1/videos/nope/script", json={"segments": [{"text": "x"}]}).status_code == 404


async def test_script_edit_keeps_timing_hints(client, store, tmp_path):
    job_id = await paused_job(client, store, tmp_path)

    resp = client.put(
        f"/api/v1/videos/{job_id}/script",
        json={"segments": [{"text": "Sunlight warms the sea."}, {"text": "Clouds form.", "image_prompt": "storm"}]},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "editing"
    assert [s["text"] for s in body["segments"]] == ["Sunlight warms the sea.", "Clouds form."]
    assert [s["image_prompt"] for s in body["segments"]] == ["ocean under sun", "storm"]
    assert [s["planned_duration"] for s in body["segments"]] == [10.0, 10.0]
    assert client.get(f"/api/v1/videos/{job_id}/script").json() == body


async def test_script_edit_must_keep_segment_count(client, store, tmp_path):
    job_id = await paused_job(client, store, tmp_path)

    resp = client.put(f"/api/v1/videos/{job_id}/script", json={"segments": [{"text": "Only one."}]})

    assert resp.status_code == 422
    assert (await store.get(job_id)).segments == DRAFT


async def test_regenerate_image_charges_and_replaces(monkeypatch, client, store, ledger, tmp_path):
    job_id = await paused_job(client, store, tmp_path)
    prompts = []

    async def fake_dalle(prompt, output_path, style="modern", config=None):
        prompts.append((prompt, style))
        return output_path

    monkeypatch.setattr(routes, "dalle_generate", fake_dalle)

    resp = client.post(f"/api/v1/videos/{job_id}/regenerate-image/1", json={"image_prompt": "thunder clouds"})

    assert resp.status_code == 200
    new_path = resp.json()["image_path"]
    assert new_path.startswith(str(tmp_path / "media" / "image_1_"))
    assert prompts == [("thunder clouds", "modern")]
    assert await ledger.get_balance("u1") == 10 - 4 - 5
    record = await store.get(job_id)
    assert record.image_paths[1] == new_path
    assert record.segments[1]["image_prompt"] == "thunder clouds"
    assert client.post(f"/api/v1/videos/{job_id}/regenerate-image/2").status_code == 400


async def test_failed_regeneration_is_refunded(monkeypatch, client, store, ledger, tmp_path):
    job_id = await paused_job(client, store, tmp_path)

    async def broken_dalle(prompt, output_path, style="modern", config=None):
        raise RuntimeError("content policy violation")

    monkeypatch.setattr(routes, "dalle_generate", broken_dalle)

    resp = client.post(f"/api/v1/videos/{job_id}/regenerate-image/0")

    assert resp.status_code == 502
    assert await ledger.get_balance("u1") == 6
    assert (await store.get(job_id)).image_paths[0] == str(tmp_path / "media" / "image_0.png")


async def test_regeneration_needs_credits(client, store, ledger, tmp_path):
    job_id = await paused_job(client, store, tmp_path)
    await ledger.charge("u1", 6)

    assert client.post(f"/api/v1/videos/{job_id}/regenerate-image/0").status_code == 402


async def test_compile_resumes_with_draft_and_custom_images(client, store, resumed, tmp_path):
    job_id = await paused_job(client, store, tmp_path)

    resp = client.post(f"/api/v1/videos/{job_id}/compile", json={"custom_images": {"1": "https://cdn.test/b.png"}})

    assert resp.status_code == 202
    assert resp.json() == {"job_id": job_id, "status": "generating"}
    [(resumed_id, edits)] = resumed
    assert resumed_id == job_id
    assert edits["segments"] == DRAFT
    assert edits["images"] == {"0": str(tmp_path / "media" / "image_0.png"), "1": "https://cdn.test/b.png"}
    assert client.get(f"/api/v1/videos/{job_id}").json()["status"] == "generating"
    assert client.post(f"/api/v1/videos/{job_id}/compile").status_code == 409


async def test_compile_rejects_unknown_image_index(client, store, resumed, tmp_path):
    job_id = await paused_job(client, store, tmp_path)

    resp = client.post(f"/api/v1/videos/{job_id}/compile", json={"custom_images": {"5": "/img/x.png"}})

    assert resp.status_code == 422
    assert resumed == []
    assert (await store.get(job_id)).status == ExternalStatus.EDITING
