import pytest

from factories import add_member, auth_headers, create_account, create_group
from rexeli.domain.document import UserDocument
from rexeli.domain.ledger import UsageLog


async def _document(s, account, group_id=None, name="rent_roll.pdf"):
    document = UserDocument(
        account_id=account.id,
        group_id=group_id,
        file_name=name,
        document_type="rent_roll",
        extracted_data={"data": {}},
        page_count=2,
        credits_used=2,
        processing_status="completed",
    )
    s.add(document)
    await s.commit()
    return document


@pytest.mark.asyncio
async def test_usage_stats(client, session_maker):
    async with session_maker() as s:
        account = await create_account(s, "stats@example.com")
        s.add_all([
            UsageLog(account_id=account.id, page_count=4, credits_used=4, processing_status="success"),
            UsageLog(account_id=account.id, page_count=2, credits_used=2, processing_status="success"),
            UsageLog(account_id=account.id, page_count=3, credits_used=0, processing_status="failed"),
        ])
        await s.commit()

    resp = await client.get("/api/v1/user/usage", headers=auth_headers(account))

    data = resp.json()["data"]
    assert len(data["usageLogs"]) == 3
    assert data["stats"] == {
        "totalProcessed": 3,
        "successful": 2,
        "failed": 1,
        "totalPages": 9,
        "totalCreditsUsed": 6,
        "successRate": 66.7,
        "avgPagesPerDoc": 3.0,
    }


@pytest.mark.asyncio
async def test_shared_group_documents_are_visible_to_members(client, session_maker):
    async with session_maker() as s:
        owner = await create_account(s, "share-owner@example.com")
        member = await create_account(s, "share-member@example.com")
        outsider = await create_account(s, "outsider@example.com")
        group = await create_group(s, owner, document_visibility="shared")
        await add_member(s, group, member)
        shared = await _document(s, owner, group.id)
        await _document(s, outsider, name="private.pdf")

    listing = await client.get("/api/v1/user/documents", headers=auth_headers(member))
    detail = await client.get(f"/api/v1/user/documents/{shared.id}", headers=auth_headers(member))
    hidden = await client.get(f"/api/v1/user/documents/{shared.id}", headers=auth_headers(outsider))

    assert [d["id"] for d in listing.json()["data"]] == [shared.id]
    assert detail.json()["data"]["extractedData"] == {"data": {}}
    assert hidden.status_code == 404


@pytest.mark.asyncio
async def test_private_group_documents_stay_private(client, session_maker):
    async with session_maker() as s:
        owner = await create_account(s, "p-owner@example.com")
        member = await create_account(s, "p-member@example.com")
        group = await create_group(s, owner, document_visibility="private")
        await add_member(s, group, member)
        await _document(s, owner, group.id)

    listing = await client.get("/api/v1/user/documents", headers=auth_headers(member))

    assert listing.json()["data"] == []
    assert listing.json()["meta"]["total"] == 0


@pytest.mark.asyncio
async def test_dashboard_combines_balance_stats_documents_and_group(client, session_maker):
    async with session_maker() as s:
        owner = await create_account(s, "dash-owner@example.com", credits=4)
        member = await create_account(s, "dash-member@example.com", credits=9)
        group = await create_group(s, owner, credits=120, name="Harbor Group")
        await add_member(s, group, member)
        s.add_all([
            UsageLog(account_id=member.id, page_count=5, credits_used=5, processing_status="success"),
            UsageLog(account_id=member.id, page_count=1, credits_used=0, processing_status="failed"),
        ])
        await s.commit()
        await _document(s, member, group.id)

    resp = await client.get("/api/v1/user/dashboard", headers=auth_headers(member))

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["credits"]["credits"] == 120
    assert data["credits"]["individualCredits"] == 9
    assert data["credits"]["creditSource"] == "group"
    assert data["stats"] == {
        "totalDocuments": 2,
        "monthlyDocuments": 2,
        "successful": 1,
        "totalPages": 6,
        "successRate": 50.0,
    }
    assert [d["fileName"] for d in data["recentDocuments"]] == ["rent_roll.pdf"]
    assert data["group"]["name"] == "Harbor Group"
    assert data["group"]["role"] == "member"
    assert data["group"]["isOwner"] is False
    assert data["group"]["memberCount"] == 2


@pytest.mark.asyncio
async def test_dashboard_without_group(client, session_maker):
    async with session_maker() as s:
        account = await create_account(s, "dash-solo@example.com", credits=3)

    data = (await client.get("/api/v1/user/dashboard", headers=auth_headers(account))).json()["data"]

    assert data["group"] is None
    assert data["recentDocuments"] == []
    assert data["stats"]["successRate"] == 0.0
    assert data["credits"]["creditSource"] == "individual"


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")

    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"
