"""Group and membership repositories."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, func, select

from rexeli.domain.account import Account
from rexeli.domain.group import Group, GroupMember
from rexeli.domain.ledger import GroupCreditTransaction
from rexeli.repositories.base import BaseRepository


class GroupRepository(BaseRepository[Group]):
    model = Group

    async def member_counts(self, group_ids: list[str]) -> dict[str, int]:
        if not group_ids:
            return {}
        result = await self._session.execute(
            select(GroupMember.group_id, func.count())
            .where(GroupMember.group_id.in_(group_ids))
            .group_by(GroupMember.group_id)
        )
        return {gid: n for gid, n in result.all()}

    async def stats(self) -> dict[str, int]:
        row = (
            await self._session.execute(
                select(
                    func.count(Group.id),
                    func.coalesce(func.sum(Group.credits), 0),
                )
            )
        ).one()
        active = await self.count(is_active=True)
        members = (
            await self._session.execute(select(func.count()).select_from(GroupMember))
        ).scalar_one()
        return {
            "total_groups": row[0],
            "active_groups": active,
            "total_credits": int(row[1]),
            "total_members": members,
        }

    async def list_due_for_reset(self, now: datetime) -> list[Group]:
        result = await self._session.execute(
            select(Group).where(
                Group.is_active.is_(True),
                Group.subscription_status == "active",
                Group.billing_cycle_end.is_not(None),
                Group.billing_cycle_end <= now,
            )
        )
        return list(result.scalars().all())

    async def delete_with_children(self, group_id: str) -> bool:
        """Drop memberships and the group ledger, then the group itself."""
        await self._session.execute(
            delete(GroupMember).where(GroupMember.group_id == group_id)
        )
        await self._session.execute(
            delete(GroupCreditTransaction).where(GroupCreditTransaction.group_id == group_id)
        )
        return await self.delete(group_id)


class GroupMemberRepository(BaseRepository[GroupMember]):
    model = GroupMember

    async def get_for_account(self, account_id: str) -> GroupMember | None:
        result = await self._session.execute(
            select(GroupMember).where(GroupMember.account_id == account_id)
        )
        return result.scalars().first()

    async def get_membership(self, group_id: str, account_id: str) -> GroupMember | None:
        result = await self._session.execute(
            select(GroupMember).where(
                GroupMember.group_id == group_id,
                GroupMember.account_id == account_id,
            )
        )
        return result.scalars().first()

    async def list_with_accounts(self, group_id: str) -> list[tuple[GroupMember, Account]]:
        result = await self._session.execute(
            select(GroupMember, Account)
            .join(Account, Account.id == GroupMember.account_id)
            .where(GroupMember.group_id == group_id)
            .order_by(GroupMember.joined_at.asc())
        )
        return [(m, a) for m, a in result.all()]

    async def count_for_group(self, group_id: str) -> int:
        return await self.count(group_id=group_id)

    async def remove(self, group_id: str, account_id: str) -> bool:
        result = await self._session.execute(
            delete(GroupMember).where(
                GroupMember.group_id == group_id,
                GroupMember.account_id == account_id,
            )
        )
        return result.rowcount > 0
