import json
from types import SimpleNamespace

import pytest
from openai import OpenAIError
from sqlalchemy import select
from unittest.mock import AsyncMock

from factories import auth_headers, create_account
from rexeli.core.exceptions import NotFoundError, UpstreamAIError, ValidationError
from rexeli.domain.training import FineTuningJob, TrainingTrigger, VerificationEdit
from rexeli.services.processing import UploadedDocument
from rexeli.services.storage import LocalStorage
from rexeli.services.training_service import (
    TrainingService,
    confidence_score,
    job_progress,
    summarize_changes,
)

EXTRACTION = {
    "documentType": "rent_roll",
    "metadata": {"propertyName": "Maple Court", "totalUnits": 3, "documentDate": None},
    "data": {"tenants": [{"unit": "101", "rent": 1450}]},
}


@pytest.fixture
def storage(tmp_path):
    return LocalStorage(str(tmp_path / "files"), "http://files.test")


@pytest.fixture
def ai():
    fake = AsyncMock()
    fake.extract.return_value = EXTRACTION
    return fake


@pytest.fixture
def service(session, ai, storage):
    return TrainingService(session, ai=ai, storage=storage)


async def _seed(service, count: int) -> list[str]:
    uploads = [
        UploadedDocument(
            file_name=f"rent_roll_{i}.png",
            contents=b"\x89PNG page %d" % i,
            kind="image",
            mime_type="image/png",
        )
        for i in range(count)
    ]
    created, failed = await service.batch_upload(uploads, "rent_roll", admin_id="admin-1")
    assert failed == []
    await service.process_batch("rent_roll", limit=count)
    return [d.id for d in created]


def _verified(tenants_rent: int = 1450) -> dict:
    return {**EXTRACTION, "data": {"tenants": [{"unit": "101", "rent": tenants_rent}]}}


def test_confidence_score_rewards_completeness():
    assert confidence_score({"metadata": {}, "data": {}}) == 0.5
    assert confidence_score(EXTRACTION) == 0.54
    big = {"metadata": {str(i): i for i in range(20)}, "data": {"rows": ["x" * 50] * 30}}
    assert confidence_score(big) == 0.95


def test_change_summary():
    assert summarize_changes(None, EXTRACTION) == "Initial verification"
    assert summarize_changes(EXTRACTION, EXTRACTION) == "No significant changes detected"
    assert summarize_changes(EXTRACTION, _verified(1500)) == "Data content modified"
    retyped = {**EXTRACTION, "documentType": "operating_budget"}
    assert summarize_changes(EXTRACTION, retyped) == (
        "Document type changed from rent_roll to operating_budget"
    )


@pytest.mark.asyncio
async def test_batch_upload_rejects_unknown_type(service):
    with pytest.raises(ValidationError):
        await service.batch_upload([], "menu", admin_id="admin-1")


@pytest.mark.asyncio
async def test_process_batch_continues_after_a_failure(service, ai):
    async def flaky(contents, *args):
        if contents.endswith(b"0"):
            raise UpstreamAIError("OpenAI API server error. Please try again later.")
        return EXTRACTION

    ai.extract.side_effect = flaky
    uploads = [
        UploadedDocument(f"doc{i}.png", b"\x89PNG %d" % i, "image", "image/png") for i in range(2)
    ]
    await service.batch_upload(uploads, "rent_roll", admin_id="admin-1")

    result = await service.process_batch("rent_roll")

    assert result["processed"] == 1
    assert result["failed"] == 1
    document = await service.get_document(result["document_ids"][0])
    assert document.processing_status == "completed"
    assert document.raw_extraction == EXTRACTION
    assert document.extraction_confidence == 0.54


@pytest.mark.asyncio
async def test_process_batch_marks_render_and_read_errors_failed(service, ai, storage, monkeypatch):
    async def unreadable(contents, *args):
        raise RuntimeError("cannot render page 1")

    ai.extract.side_effect = unreadable
    [created], _ = await service.batch_upload(
        [UploadedDocument("scan.png", b"\x89PNG scan", "image", "image/png")],
        "rent_roll",
        admin_id="admin-1",
    )

    result = await service.process_batch("rent_roll")

    assert result == {"processed": 0, "failed": 1, "document_ids": []}
    document = await service.get_document(created.id)
    assert document.processing_status == "failed"
    assert document.processing_error == "cannot render page 1"

    monkeypatch.setattr(storage, "read", AsyncMock(side_effect=PermissionError("denied")))
    await service._documents.update(created.id, processing_status="pending")

    assert (await service.process_batch("rent_roll"))["failed"] == 1
    assert (await service.get_document(created.id)).processing_error == "denied"


@pytest.mark.asyncio
async def test_verify_validates_payload(service):
    [doc_id] = await _seed(service, 1)

    with pytest.raises(ValidationError, match="Quality score"):
        await service.verify(doc_id, _verified(), 1.5, admin_id="admin-1")
    with pytest.raises(ValidationError, match="missing metadata"):
        await service.verify(
            doc_id, {"documentType": "rent_roll", "data": {}}, 0.8, admin_id="admin-1",
        )
    with pytest.raises(ValidationError, match="required"):
        await service.verify(doc_id, None, 0.8, admin_id="admin-1")


@pytest.mark.asyncio
async def test_verify_records_edit(service, session):
    [doc_id] = await _seed(service, 1)

    document, job = await service.verify(doc_id, _verified(1500), 0.9, admin_id="admin-1")

    assert job is None
    assert document.is_verified
    assert document.verification_status == "verified"
    edit = (await session.execute(select(VerificationEdit))).scalar_one()
    assert edit.verification_action == "verify"
    assert edit.changes_made == "Data content modified"
    assert edit.before_data == EXTRACTION


@pytest.mark.asyncio
async def test_tenth_verification_starts_fine_tuning_job(service, session):
    doc_ids = await _seed(service, 10)

    jobs = []
    for doc_id in doc_ids:
        _, job = await service.verify(doc_id, _verified(), 0.9, admin_id="admin-1")
        jobs.append(job)

    assert jobs[:9] == [None] * 9
    assert jobs[9] is not None
    job = (await session.execute(select(FineTuningJob))).scalar_one()
    assert job.status == "pending"
    assert job.triggered_by == "auto"
    assert job.training_examples_count == 10
    trigger = (await session.execute(select(TrainingTrigger))).scalar_one()
    assert trigger.last_trigger_count == 10
    assert trigger.next_trigger_at == 20
    assert trigger.total_triggers == 1
    assert trigger.last_job_id == job.id


@pytest.mark.asyncio
async def test_reject_requires_reason_and_excludes_document(service):
    [doc_id] = await _seed(service, 1)

    with pytest.raises(ValidationError):
        await service.reject(doc_id, "  ", admin_id="admin-1")
    document = await service.reject(doc_id, "Scan is unreadable", admin_id="admin-1")

    assert document.verification_status == "rejected"
    assert document.include_in_training is False


@pytest.mark.asyncio
async def test_export_needs_minimum_verified_documents(service):
    doc_ids = await _seed(service, 3)
    for doc_id in doc_ids:
        await service.verify(doc_id, _verified(), 0.9, admin_id="admin-1")

    with pytest.raises(ValidationError, match="At least 5"):
        await service.export("rent_roll")


@pytest.mark.asyncio
async def test_export_writes_chat_jsonl_per_split(service, storage):
    doc_ids = await _seed(service, 6)
    for doc_id in doc_ids:
        await service.verify(doc_id, _verified(), 0.9, admin_id="admin-1")

    split = await service.auto_split("rent_roll", seed=7)
    run = await service.export("rent_roll", admin_id="admin-1")

    assert split == {"train": 5, "validation": 1}
    assert (run.train_examples, run.validation_examples, run.skipped_examples) == (5, 1, 0)
    lines = (await storage.read(run.train_file_path)).decode().splitlines()
    example = json.loads(lines[0])
    roles = [m["role"] for m in example["messages"]]
    assert roles == ["system", "user", "assistant"]
    image = example["messages"][1]["content"][1]["image_url"]
    assert image["url"].startswith("data:image/png;base64,")
    assert image["detail"] == "high"
    assert json.loads(example["messages"][2]["content"]) == _verified()


@pytest.mark.asyncio
async def test_metrics_summarize_by_type(service):
    doc_ids = await _seed(service, 5)
    for doc_id in doc_ids:
        await service.verify(doc_id, _verified(), 0.8, admin_id="admin-1")

    metrics = await service.metrics()

    rent_roll = next(m for m in metrics["by_type"] if m["document_type"] == "rent_roll")
    assert rent_roll["verified_documents"] == 5
    assert rent_roll["ready_for_training"] is True
    assert metrics["ready_types"] == ["rent_roll"]
    assert metrics["total_documents"] == 5


async def _submitted_job(session, openai_job_id: str | None = "ftjob-abc") -> FineTuningJob:
    job = FineTuningJob(
        document_type="rent_roll",
        base_model="gpt-4o-2024-08-06",
        status="running" if openai_job_id else "pending",
        openai_job_id=openai_job_id,
    )
    session.add(job)
    await session.commit()
    return job


@pytest.mark.asyncio
async def test_refresh_job_status_records_finished_model(service, session, ai):
    job = await _submitted_job(session)
    ai.client.fine_tuning.jobs.retrieve.return_value = SimpleNamespace(
        status="succeeded", fine_tuned_model="ft:gpt-4o:rexeli-rent-roll", finished_at=1_700_000_000,
        error=None,
    )

    refreshed = await service.refresh_job_status(job.id)

    ai.client.fine_tuning.jobs.retrieve.assert_awaited_once_with("ftjob-abc")
    assert refreshed.status == "succeeded"
    assert refreshed.fine_tuned_model == "ft:gpt-4o:rexeli-rent-roll"
    assert refreshed.finished_at is not None
    assert job_progress(refreshed.status)["percentage"] == 100


@pytest.mark.asyncio
async def test_refresh_job_status_keeps_provider_failure_reason(service, session, ai):
    job = await _submitted_job(session)
    ai.client.fine_tuning.jobs.retrieve.return_value = SimpleNamespace(
        status="failed", fine_tuned_model=None, finished_at=None,
        error=SimpleNamespace(message="Training file has invalid rows"),
    )

    refreshed = await service.refresh_job_status(job.id)

    assert refreshed.status == "failed"
    assert refreshed.error_message == "Training file has invalid rows"
    assert refreshed.finished_at is not None


@pytest.mark.asyncio
async def test_refresh_skips_jobs_never_submitted(service, session, ai):
    job = await _submitted_job(session, openai_job_id=None)

    refreshed = await service.refresh_job_status(job.id)

    assert refreshed.status == "pending"
    ai.client.fine_tuning.jobs.retrieve.assert_not_called()
    with pytest.raises(NotFoundError):
        await service.refresh_job_status("missing")


@pytest.mark.asyncio
async def test_monitor_counts_outcomes_and_survives_errors(service, session, ai):
    await _submitted_job(session, "ftjob-1")
    await _submitted_job(session, "ftjob-2")
    await _submitted_job(session, "ftjob-3")
    ai.client.fine_tuning.jobs.retrieve.side_effect = [
        SimpleNamespace(status="queued", fine_tuned_model=None, finished_at=None, error=None),
        OpenAIError("connection reset"),
        SimpleNamespace(status="succeeded", fine_tuned_model="ft:x", finished_at=None, error=None),
    ]

    counts = await service.monitor_jobs()

    assert counts == {
        "checked": 3, "succeeded": 1, "failed": 0, "still_running": 1, "errors": 1,
    }


@pytest.mark.asyncio
async def test_status_endpoint_reports_progress(client, session_maker):
    async with session_maker() as s:
        admin = await create_account(s, "trainer@rexeli.com", role="admin")
        job = await _submitted_job(s, openai_job_id=None)

    resp = await client.get(
        f"/api/v1/training/fine-tune/status/{job.id}", headers=auth_headers(admin),
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["message"] == "Job status: pending"
    assert body["data"]["job"]["id"] == job.id
    assert body["data"]["progress"] == {"currentStep": "Waiting for submission", "percentage": 0}
