import asyncio

import pytest
from sqlalchemy import select

from factories import add_member, create_account, create_group
from rexeli.core.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    ValidationError,
)
from rexeli.domain.account import Account
from rexeli.domain.group import Group
from rexeli.domain.ledger import CreditTransaction, GroupCreditTransaction
from rexeli.services.credit_service import CreditService


@pytest.mark.asyncio
async def test_individual_balance_covers_document(session):
    account = await create_account(session, "solo@example.com", credits=10)

    result = await CreditService(session).validate_credit_transaction(account.id, 3)

    assert result.is_valid
    assert result.holder_type == "individual"
    assert result.current_credits == 10
    assert result.message == (
        "This document has 3 pages and will use 3 credits. You have 10 credits remaining."
    )


@pytest.mark.asyncio
async def test_individual_shortage_message(session):
    account = await create_account(session, "short@example.com", credits=7)

    result = await CreditService(session).validate_credit_transaction(account.id, 10)

    assert not result.is_valid
    assert result.shortage == 3
    assert result.group_name is None
    assert result.message == (
        "Insufficient credits. This document has 10 pages but you only have "
        "7 credits remaining. Please upgrade your plan to continue."
    )


@pytest.mark.asyncio
async def test_group_member_uses_group_pool(session):
    owner = await create_account(session, "owner@example.com", credits=0)
    member = await create_account(session, "member@example.com", credits=500)
    group = await create_group(session, owner, credits=2, name="Acme Realty")
    await add_member(session, group, member)

    result = await CreditService(session).validate_credit_transaction(member.id, 3)

    assert not result.is_valid
    assert result.holder_type == "group"
    assert result.current_credits == 2
    assert result.group_name == "Acme Realty"
    assert result.message == (
        'Insufficient group credits. This document has 3 pages but your group '
        '"Acme Realty" only has 2 credits remaining. You need 1 more. '
        "Please contact your group owner."
    )


@pytest.mark.asyncio
async def test_group_message_uses_singular_nouns(session):
    owner = await create_account(session, "single@example.com")
    await create_group(session, owner, credits=0, name="Tiny")

    result = await CreditService(session).validate_credit_transaction(owner.id, 1)

    assert 'has 1 page but your group "Tiny" only has 0 credits remaining' in result.message


@pytest.mark.asyncio
async def test_individual_messages_use_singular_nouns(session):
    account = await create_account(session, "one@example.com", credits=1)
    service = CreditService(session)

    covered = await service.validate_credit_transaction(account.id, 1)
    short = await service.validate_credit_transaction(account.id, 2)

    assert covered.message == (
        "This document has 1 page and will use 1 credit. You have 1 credit remaining."
    )
    assert "has 2 pages but you only have 1 credit remaining" in short.message


@pytest.mark.asyncio
async def test_inactive_group_falls_back_to_individual_balance(session):
    owner = await create_account(session, "fallback@example.com", credits=10)
    await create_group(session, owner, credits=1000, is_active=False)

    result = await CreditService(session).validate_credit_transaction(owner.id, 4)

    assert result.is_valid
    assert result.holder_type == "individual"
    assert result.current_credits == 10


@pytest.mark.asyncio
async def test_unknown_and_inactive_accounts_are_rejected(session):
    inactive = await create_account(session, "off@example.com", credits=50, is_active=False)
    service = CreditService(session)

    with pytest.raises(AccountNotFoundError):
        await service.validate_credit_transaction("missing-id", 1)
    with pytest.raises(AccountInactiveError):
        await service.validate_credit_transaction(inactive.id, 1)
    with pytest.raises(ValidationError):
        await service.validate_credit_transaction(inactive.id, 0)


@pytest.mark.asyncio
async def test_low_balance_schedules_notice(session, low_credit_notice):
    account = await create_account(
        session, "low@example.com", credits=30, subscription_type="entrepreneur_monthly",
    )

    await CreditService(session).validate_credit_transaction(account.id, 10)

    low_credit_notice.assert_called_once()
    notice = low_credit_notice.call_args.args[0]
    assert notice.email == "low@example.com"
    assert notice.balance_after == 20
    assert notice.threshold == 25


@pytest.mark.asyncio
async def test_healthy_balance_sends_no_notice(session, low_credit_notice):
    account = await create_account(
        session, "rich@example.com", credits=1000, subscription_type="entrepreneur_monthly",
    )

    await CreditService(session).validate_credit_transaction(account.id, 10)

    low_credit_notice.assert_not_called()


@pytest.mark.asyncio
async def test_deduct_individual_writes_ledger_row(session_maker):
    async with session_maker() as s:
        account = await create_account(s, "deduct@example.com", credits=10)
        result = await CreditService(s).deduct_credits(account.id, 3)
        await s.commit()

    assert result.success
    assert result.remaining_credits == 7

    async with session_maker() as s:
        stored = await s.get(Account, account.id)
        rows = (await s.execute(select(CreditTransaction))).scalars().all()
    assert stored.credits == 7
    assert stored.monthly_usage == 3
    assert stored.lifetime_usage == 3
    assert [(r.amount, r.transaction_type) for r in rows] == [(-3, "deduction")]
    assert rows[0].description == "Document processing: 3 page(s)"


@pytest.mark.asyncio
async def test_deduct_from_group_leaves_individual_untouched(session_maker):
    async with session_maker() as s:
        owner = await create_account(s, "gowner@example.com", credits=100)
        group = await create_group(s, owner, credits=20)
        result = await CreditService(s).deduct_credits(owner.id, 5)
        await s.commit()

    assert result.success
    assert result.remaining_credits == 15

    async with session_maker() as s:
        assert (await s.get(Account, owner.id)).credits == 100
        assert (await s.get(Group, group.id)).credits == 15
        rows = (await s.execute(select(GroupCreditTransaction))).scalars().all()
        individual = (await s.execute(select(CreditTransaction))).scalars().all()
    assert [(r.amount, r.account_id) for r in rows] == [(-5, owner.id)]
    assert individual == []


@pytest.mark.asyncio
async def test_deduction_that_loses_a_race_changes_nothing(session_maker):
    async with session_maker() as s:
        account = await create_account(s, "race@example.com", credits=5)

    async with session_maker() as first, session_maker() as second:
        assert (await CreditService(first).validate_credit_transaction(account.id, 4)).is_valid
        assert (await CreditService(second).validate_credit_transaction(account.id, 4)).is_valid

        won = await CreditService(second).deduct_credits(account.id, 4)
        await second.commit()
        lost = await CreditService(first).deduct_credits(account.id, 4)
        await first.commit()

    assert won.success
    assert not lost.success
    assert lost.error == "insufficient_credits"
    assert lost.remaining_credits == 1

    async with session_maker() as s:
        assert (await s.get(Account, account.id)).credits == 1
        rows = (await s.execute(select(CreditTransaction))).scalars().all()
    assert len(rows) == 1


async def _deduct_in_own_session(session_maker, account_id: str, pages: int):
    async with session_maker() as s:
        result = await CreditService(s).deduct_credits(account_id, pages)
        await s.commit()
        return result


@pytest.mark.asyncio
async def test_concurrent_group_deductions_never_overdraw_pool(session_maker):
    async with session_maker() as s:
        owner = await create_account(s, "pool-owner@example.com", credits=50)
        member = await create_account(s, "pool-member@example.com", credits=50)
        group = await create_group(s, owner, credits=5)
        await add_member(s, group, member)

    results = await asyncio.gather(
        _deduct_in_own_session(session_maker, owner.id, 4),
        _deduct_in_own_session(session_maker, member.id, 4),
    )

    assert sorted(r.success for r in results) == [False, True]

    async with session_maker() as s:
        assert (await s.get(Group, group.id)).credits == 1
        rows = (await s.execute(select(GroupCreditTransaction))).scalars().all()
        assert (await s.get(Account, owner.id)).credits == 50
        assert (await s.get(Account, member.id)).credits == 50
    assert [r.amount for r in rows] == [-4]


@pytest.mark.asyncio
async def test_credit_info_reports_group_source(session):
    owner = await create_account(session, "info@example.com", credits=3)
    await create_group(session, owner, credits=40, name="Pool")

    info = await CreditService(session).get_credit_info(owner.id)

    assert info["credits"] == 40
    assert info["individual_credits"] == 3
    assert info["credit_source"] == "group"
    assert info["group_name"] == "Pool"


@pytest.mark.asyncio
async def test_grant_limits(session):
    account = await create_account(session, "grant@example.com")
    service = CreditService(session)

    with pytest.raises(ValidationError):
        await service.add_credits(account.id, 0)
    with pytest.raises(ValidationError):
        await service.add_credits(account.id, 100_001)
    assert await service.add_credits(account.id, 100_000, admin_id="admin-1") == 100_000


@pytest.mark.asyncio
async def test_inactive_group_rejects_credit_grant(session):
    owner = await create_account(session, "grp@example.com")
    group = await create_group(session, owner, is_active=False)

    with pytest.raises(ValidationError, match="inactive group"):
        await CreditService(session).add_group_credits(group.id, 10)
