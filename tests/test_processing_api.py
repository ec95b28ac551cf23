import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from unittest.mock import AsyncMock, patch

from factories import auth_headers, create_account, create_group, pdf_bytes
from rexeli.core.config import settings
from rexeli.core.exceptions import UpstreamAIError
from rexeli.domain.account import Account
from rexeli.domain.document import UserDocument
from rexeli.domain.group import Group
from rexeli.domain.ledger import CreditTransaction, UsageLog
from rexeli.services.processing import DEDUCTION_ERROR_WARNING

EXTRACTION = {
    "documentType": "rent_roll",
    "metadata": {"propertyName": "Maple Court", "totalUnits": 3},
    "data": {"tenants": [{"unit": "101", "rent": 1450}]},
}


def _pdf_upload(pages: int) -> dict:
    return {"file": ("rent_roll.pdf", pdf_bytes(pages), "application/pdf")}


@pytest.mark.asyncio
async def test_extract_charges_one_credit_per_page(client, session_maker, ai):
    ai.extract = AsyncMock(return_value=EXTRACTION)
    async with session_maker() as s:
        account = await create_account(s, "broker@example.com", credits=10)

    resp = await client.post(
        "/api/v1/extract",
        files=_pdf_upload(3),
        data={"documentType": "rent_roll"},
        headers=auth_headers(account),
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["warnings"] == []
    assert body["data"]["pageCount"] == 3
    assert body["data"]["creditsUsed"] == 3
    assert body["data"]["remainingCredits"] == 7
    assert body["data"]["extractedData"] == EXTRACTION
    assert body["data"]["documentId"]

    async with session_maker() as s:
        assert (await s.get(Account, account.id)).credits == 7
        logs = (await s.execute(select(UsageLog))).scalars().all()
        documents = (await s.execute(select(UserDocument))).scalars().all()
        ledger = (await s.execute(select(CreditTransaction))).scalars().all()
    assert [(log.processing_status, log.credits_used, log.page_count) for log in logs] == [
        ("success", 3, 3)
    ]
    assert len(documents) == 1
    assert documents[0].extracted_data == EXTRACTION
    assert [row.amount for row in ledger] == [-3]


@pytest.mark.asyncio
async def test_extract_rejects_document_larger_than_balance(client, session_maker, ai):
    ai.extract = AsyncMock(return_value=EXTRACTION)
    async with session_maker() as s:
        account = await create_account(s, "thin@example.com", credits=7)

    resp = await client.post(
        "/api/v1/extract",
        files=_pdf_upload(10),
        data={"documentType": "rent_roll"},
        headers=auth_headers(account),
    )

    assert resp.status_code == 402
    body = resp.json()
    assert body["success"] is False
    assert body["code"] == "INSUFFICIENT_CREDITS"
    assert body["data"]["requiredCredits"] == 10
    assert body["data"]["currentCredits"] == 7
    assert body["data"]["shortage"] == 3
    ai.extract.assert_not_called()

    async with session_maker() as s:
        assert (await s.get(Account, account.id)).credits == 7
        assert (await s.execute(select(UsageLog))).scalars().all() == []


@pytest.mark.asyncio
async def test_group_member_extraction_draws_from_pool(client, session_maker, ai):
    ai.extract = AsyncMock(return_value=EXTRACTION)
    async with session_maker() as s:
        owner = await create_account(s, "lead@example.com", credits=50)
        group = await create_group(s, owner, credits=12)

    resp = await client.post(
        "/api/v1/extract",
        files={"file": ("scan.png", b"\x89PNG fake image", "image/png")},
        data={"documentType": "lease_agreement"},
        headers=auth_headers(owner),
    )

    assert resp.status_code == 200
    assert resp.json()["data"]["remainingCredits"] == 11

    async with session_maker() as s:
        assert (await s.get(Group, group.id)).credits == 11
        assert (await s.get(Account, owner.id)).credits == 50
        log = (await s.execute(select(UsageLog))).scalar_one()
    assert log.group_id == group.id


@pytest.mark.asyncio
async def test_provider_failure_logs_attempt_without_charging(client, session_maker, ai):
    ai.extract = AsyncMock(side_effect=UpstreamAIError("OpenAI API server error. Please try again later."))
    async with session_maker() as s:
        account = await create_account(s, "unlucky@example.com", credits=10)

    resp = await client.post(
        "/api/v1/extract",
        files=_pdf_upload(2),
        data={"documentType": "rent_roll"},
        headers=auth_headers(account),
    )

    assert resp.status_code == 502
    assert resp.json()["error"] == "OpenAI API server error. Please try again later."

    async with session_maker() as s:
        assert (await s.get(Account, account.id)).credits == 10
        log = (await s.execute(select(UsageLog))).scalar_one()
        ledger = (await s.execute(select(CreditTransaction))).scalars().all()
    assert log.processing_status == "failed"
    assert log.credits_used == 0
    assert log.error_message == "OpenAI API server error. Please try again later."
    assert ledger == []


@pytest.mark.asyncio
async def test_database_error_during_deduction_still_returns_extraction(client, session_maker, ai):
    ai.extract = AsyncMock(return_value=EXTRACTION)
    async with session_maker() as s:
        account = await create_account(s, "flaky@example.com", credits=10)

    db_gone = OperationalError("UPDATE accounts", {}, Exception("database is locked"))
    with patch(
        "rexeli.repositories.ledger.CreditRepository.decrement_account",
        AsyncMock(side_effect=db_gone),
    ):
        resp = await client.post(
            "/api/v1/extract",
            files=_pdf_upload(2),
            data={"documentType": "rent_roll"},
            headers=auth_headers(account),
        )

    assert resp.status_code == 200
    body = resp.json()
    assert body["data"]["extractedData"] == EXTRACTION
    assert body["data"]["creditsUsed"] == 0
    assert body["data"]["remainingCredits"] == 10
    assert body["warnings"] == [DEDUCTION_ERROR_WARNING]
    ai.extract.assert_awaited_once()

    async with session_maker() as s:
        assert (await s.get(Account, account.id)).credits == 10
        log = (await s.execute(select(UsageLog))).scalar_one()
        ledger = (await s.execute(select(CreditTransaction))).scalars().all()
    assert (log.processing_status, log.credits_used, log.page_count) == ("success", 0, 2)
    assert ledger == []


@pytest.mark.asyncio
async def test_extract_requires_bearer_token(client):
    resp = await client.post(
        "/api/v1/extract", files=_pdf_upload(1), data={"documentType": "rent_roll"},
    )

    assert resp.status_code == 401
    assert resp.json()["code"] == "UNAUTHORIZED"


@pytest.mark.asyncio
async def test_unknown_document_type_is_rejected(client, session_maker, ai):
    ai.extract = AsyncMock(return_value=EXTRACTION)
    async with session_maker() as s:
        account = await create_account(s, "typo@example.com", credits=10)

    resp = await client.post(
        "/api/v1/extract",
        files=_pdf_upload(1),
        data={"documentType": "menu"},
        headers=auth_headers(account),
    )

    assert resp.status_code == 400
    assert resp.json()["error"] == "Invalid document type"


@pytest.mark.asyncio
async def test_unsupported_file_type_is_rejected(client, session_maker):
    async with session_maker() as s:
        account = await create_account(s, "docx@example.com", credits=10)

    resp = await client.post(
        "/api/v1/upload",
        files={"file": ("memo.docx", b"PK\x03\x04", "application/msword")},
        headers=auth_headers(account),
    )

    assert resp.status_code == 400
    body = resp.json()
    assert body["code"] == "VALIDATION_ERROR"
    assert body["error"].startswith("Unsupported file type 'application/msword'")


@pytest.mark.asyncio
async def test_oversized_file_is_rejected(client, session_maker, monkeypatch):
    monkeypatch.setattr(settings, "max_upload_size_mb", 0)
    async with session_maker() as s:
        account = await create_account(s, "bulky@example.com", credits=10)

    resp = await client.post(
        "/api/v1/extract",
        files=_pdf_upload(1),
        data={"documentType": "rent_roll"},
        headers=auth_headers(account),
    )

    assert resp.status_code == 400
    assert resp.json()["error"] == "File size exceeds the 0MB limit."


@pytest.mark.asyncio
async def test_upload_reports_page_count(client, session_maker):
    async with session_maker() as s:
        account = await create_account(s, "uploader@example.com")

    resp = await client.post(
        "/api/v1/upload", files=_pdf_upload(4), headers=auth_headers(account),
    )

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["pageCount"] == 4
    assert data["fileName"] == "rent_roll.pdf"
    assert data["filePath"].startswith(f"documents/{account.id}/")


@pytest.mark.asyncio
async def test_classify_returns_prompt_for_detected_type(client, session_maker, ai):
    ai.classify = AsyncMock(
        return_value={"type": "rent_roll", "confidence": 0.93, "reasoning": "Unit and rent columns"}
    )
    async with session_maker() as s:
        account = await create_account(s, "classify@example.com")

    resp = await client.post(
        "/api/v1/classify", files=_pdf_upload(1), headers=auth_headers(account),
    )

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["classification"]["type"] == "rent_roll"
    assert "rent_roll" in data["extractionPrompt"]


@pytest.mark.asyncio
async def test_balance_round_trip_after_extraction(client, session_maker, ai):
    ai.extract = AsyncMock(return_value=EXTRACTION)
    async with session_maker() as s:
        account = await create_account(s, "roundtrip@example.com", credits=10)

    first = await client.post(
        "/api/v1/extract",
        files=_pdf_upload(3),
        data={"documentType": "rent_roll"},
        headers=auth_headers(account),
    )
    second = await client.post(
        "/api/v1/extract",
        files=_pdf_upload(10),
        data={"documentType": "rent_roll"},
        headers=auth_headers(account),
    )

    assert first.status_code == 200
    assert first.json()["data"]["remainingCredits"] == 7
    assert second.status_code == 402
    assert second.json()["data"]["shortage"] == 3
    assert second.json()["error"] == (
        "Insufficient credits. This document has 10 pages "
        "but you only have 7 credits remaining. Please upgrade your plan to continue."
    )
    assert ai.extract.await_count == 1

    async with session_maker() as s:
        assert (await s.get(Account, account.id)).credits == 7
