"""Credit holders: the individual account or the group pool that pays for a request.

``resolve_holder`` is the single place that decides which balance an account
draws from. Callers then talk to the holder without branching on group
membership.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from sqlalchemy.ext.asyncio import AsyncSession

from rexeli.domain.account import Account
from rexeli.domain.group import Group
from rexeli.repositories.group import GroupRepository
from rexeli.repositories.ledger import CreditRepository

logger = logging.getLogger(__name__)


class CreditHolder(ABC):
    kind: str

    def __init__(self, session: AsyncSession):
        self._credits = CreditRepository(session)

    @property
    @abstractmethod
    def id(self) -> str: ...

    @property
    @abstractmethod
    def name(self) -> str | None: ...

    @property
    @abstractmethod
    def plan(self) -> str: ...

    @abstractmethod
    async def get_balance(self) -> int:
        """Current balance, read from the database (never the cached ORM value)."""

    @abstractmethod
    async def try_deduct(self, pages: int, account_id: str) -> bool:
        """Atomically take ``pages`` credits and write the ledger row.

        Returns False, changing nothing, when the balance is too low.
        """

    @abstractmethod
    async def credit(
        self,
        amount: int,
        transaction_type: str,
        *,
        admin_id: str | None = None,
        description: str | None = None,
    ) -> int:
        """Apply a signed balance change with its ledger row; return the new balance."""


class IndividualHolder(CreditHolder):
    kind = "individual"

    def __init__(self, session: AsyncSession, account: Account):
        super().__init__(session)
        self.account = account

    @property
    def id(self) -> str:
        return self.account.id

    @property
    def name(self) -> str | None:
        return None

    @property
    def plan(self) -> str:
        return self.account.subscription_type

    async def get_balance(self) -> int:
        return await self._credits.account_balance(self.account.id) or 0

    async def try_deduct(self, pages: int, account_id: str) -> bool:
        if not await self._credits.decrement_account(self.account.id, pages):
            return False
        await self._credits.add_transaction(
            account_id=self.account.id,
            amount=-pages,
            transaction_type="deduction",
            description=f"Document processing: {pages} page(s)",
        )
        return True

    async def credit(
        self,
        amount: int,
        transaction_type: str,
        *,
        admin_id: str | None = None,
        description: str | None = None,
    ) -> int:
        await self._credits.increment_account(self.account.id, amount)
        await self._credits.add_transaction(
            account_id=self.account.id,
            amount=amount,
            transaction_type=transaction_type,
            admin_id=admin_id,
            description=description or f"Credits added: {amount}",
        )
        return await self.get_balance()


class GroupHolder(CreditHolder):
    kind = "group"

    def __init__(self, session: AsyncSession, group: Group):
        super().__init__(session)
        self.group = group

    @property
    def id(self) -> str:
        return self.group.id

    @property
    def name(self) -> str | None:
        return self.group.name

    @property
    def plan(self) -> str:
        return self.group.subscription_type

    async def get_balance(self) -> int:
        return await self._credits.group_balance(self.group.id) or 0

    async def try_deduct(self, pages: int, account_id: str) -> bool:
        if not await self._credits.decrement_group(self.group.id, pages):
            return False
        await self._credits.add_group_transaction(
            group_id=self.group.id,
            account_id=account_id,
            amount=-pages,
            transaction_type="deduction",
            description="Document processing",
        )
        return True

    async def credit(
        self,
        amount: int,
        transaction_type: str,
        *,
        admin_id: str | None = None,
        description: str | None = None,
    ) -> int:
        await self._credits.increment_group(self.group.id, amount)
        await self._credits.add_group_transaction(
            group_id=self.group.id,
            amount=amount,
            transaction_type=transaction_type,
            admin_id=admin_id,
            description=description or f"Credits added: {amount}",
        )
        return await self.get_balance()


async def resolve_holder(session: AsyncSession, account: Account) -> CreditHolder:
    """Group pool when the account belongs to an active group, else the account itself."""
    if account.group_id:
        group = await GroupRepository(session).get_by_id(account.group_id)
        if group is not None and group.is_active:
            return GroupHolder(session, group)
        logger.info(
            "Group %s of account %s is inactive or missing; using individual balance",
            account.group_id, account.id,
        )
    return IndividualHolder(session, account)
