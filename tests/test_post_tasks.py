import pytest
from sqlalchemy import select
from unittest.mock import AsyncMock, patch

from factories import create_account
from rexeli.domain.account import Account
from rexeli.domain.ledger import UsageLog
from rexeli.services.post_tasks import PostSuccessTasks
from rexeli.services.processing import (
    DOCUMENT_SAVE_WARNING,
    DEDUCTION_WARNING,
    DocumentProcessingService,
    UploadedDocument,
)

EXTRACTION = {"documentType": "rent_roll", "metadata": {}, "data": {"tenants": []}}
IMAGE = UploadedDocument(
    file_name="photo.png", contents=b"\x89PNG fake", kind="image", mime_type="image/png",
)


@pytest.mark.asyncio
async def test_failed_task_becomes_warning_and_later_tasks_still_run(session):
    ran = []

    async def ok():
        ran.append("ok")

    async def broken():
        raise RuntimeError("disk full")

    tasks = PostSuccessTasks(session)
    tasks.add("first", broken, warning="first failed")
    tasks.add("second", ok, warning="second failed")

    assert tasks.names == ["first", "second"]
    assert await tasks.run() == ["first failed"]
    assert ran == ["ok"]


@pytest.mark.asyncio
async def test_document_history_failure_keeps_charge_and_usage_log(session_maker):
    async with session_maker() as s:
        account = await create_account(s, "warn@example.com", credits=5)

    ai = AsyncMock()
    ai.extract.return_value = EXTRACTION
    async with session_maker() as s:
        service = DocumentProcessingService(s, ai=ai)
        with patch.object(
            service._documents, "create", AsyncMock(side_effect=RuntimeError("write failed")),
        ):
            outcome = await service.extract(
                await s.get(Account, account.id), IMAGE, "rent_roll",
            )

    assert outcome.warnings == [DOCUMENT_SAVE_WARNING]
    assert outcome.credits_used == 1
    assert outcome.document_id is None
    assert outcome.extracted_data == EXTRACTION

    async with session_maker() as s:
        assert (await s.get(Account, account.id)).credits == 4
        log = (await s.execute(select(UsageLog))).scalar_one()
    assert log.credits_used == 1


@pytest.mark.asyncio
async def test_lost_deduction_still_returns_results(session_maker):
    async with session_maker() as s:
        account = await create_account(s, "drained@example.com", credits=1)

    ai = AsyncMock()

    async def drain_then_extract(*args):
        # Another request spends the last credit while the provider is working
        async with session_maker() as other:
            (await other.get(Account, account.id)).credits = 0
            await other.commit()
        return EXTRACTION

    ai.extract.side_effect = drain_then_extract
    async with session_maker() as s:
        outcome = await DocumentProcessingService(s, ai=ai).extract(
            await s.get(Account, account.id), IMAGE, "rent_roll",
        )

    assert outcome.warnings == [DEDUCTION_WARNING]
    assert outcome.credits_used == 0
    assert outcome.remaining_credits == 0

    async with session_maker() as s:
        log = (await s.execute(select(UsageLog))).scalar_one()
    assert log.processing_status == "success"
    assert log.credits_used == 0
