"""Group administration: lifecycle, membership and the shared credit pool."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from rexeli.core.exceptions import NotFoundError, ValidationError
from rexeli.core.pagination import PaginationParams
from rexeli.domain.account import Account
from rexeli.domain.group import Group, GroupMember
from rexeli.domain.mixins import utcnow
from rexeli.repositories.account import AccountRepository
from rexeli.repositories.group import GroupMemberRepository, GroupRepository
from rexeli.repositories.ledger import CreditRepository
from rexeli.schemas.group import GroupCreate, GroupUpdate
from rexeli.services.credit_holder import GroupHolder
from rexeli.services.subscription import (
    GROUP_MAX_MEMBERS,
    GROUP_SUBSCRIPTION_CREDITS,
    billing_cycle_end,
)

logger = logging.getLogger(__name__)

VISIBILITIES = ("shared", "private")
MEMBER_ROLES = ("owner", "member")
SUBSCRIPTION_STATUSES = ("active", "inactive", "cancelled", "expired")

OWNER_REMOVAL_MESSAGE = (
    "Cannot remove the group owner. Transfer ownership first or delete the group."
)


class GroupService:
    def __init__(self, session: AsyncSession):
        self._session = session
        self._groups = GroupRepository(session)
        self._members = GroupMemberRepository(session)
        self._accounts = AccountRepository(session)
        self._credits = CreditRepository(session)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def list_groups(
        self,
        pagination: PaginationParams,
        *,
        status: str | None = None,
    ) -> tuple[list[Group], int, dict[str, int], dict[str, int]]:
        filters = {"subscription_status": status} if status else None
        groups, total = await self._groups.list(
            offset=pagination.offset,
            limit=pagination.limit,
            order_by=pagination.sort,
            order=pagination.order,
            filters=filters,
        )
        counts = await self._groups.member_counts([g.id for g in groups])
        return groups, total, counts, await self._groups.stats()

    async def get_group(self, group_id: str) -> Group:
        group = await self._groups.get_by_id(group_id)
        if group is None:
            raise NotFoundError("Group", group_id)
        return group

    async def member_count(self, group_id: str) -> int:
        return await self._members.count_for_group(group_id)

    async def list_members(self, group_id: str) -> tuple[list[tuple[GroupMember, Account]], Group]:
        group = await self.get_group(group_id)
        return await self._members.list_with_accounts(group_id), group

    async def list_credit_history(self, group_id: str, pagination: PaginationParams):
        group = await self.get_group(group_id)
        transactions, total = await self._credits.list_group_transactions(
            group_id, offset=pagination.offset, limit=pagination.limit,
        )
        balance = await GroupHolder(self._session, group).get_balance()
        return balance, transactions, total

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create_group(self, data: GroupCreate, *, admin_id: str) -> Group:
        name = data.name.strip()
        if not name:
            raise ValidationError("Group name is required")
        if not data.owner_id:
            raise ValidationError("Owner ID is required")
        if data.subscription_type not in GROUP_SUBSCRIPTION_CREDITS:
            raise ValidationError("Invalid subscription type")
        if data.document_visibility not in VISIBILITIES:
            raise ValidationError("Invalid document visibility")
        if data.initial_credits is not None and data.initial_credits < 0:
            raise ValidationError("Initial credits cannot be negative")

        owner = await self._accounts.get_by_id(data.owner_id)
        if owner is None:
            raise ValidationError("Owner user not found")
        if owner.group_id or await self._members.get_for_account(owner.id):
            raise ValidationError("Owner is already a member of another group")

        credits = (
            data.initial_credits
            if data.initial_credits is not None
            else GROUP_SUBSCRIPTION_CREDITS[data.subscription_type]
        )
        start = utcnow()
        group = await self._groups.create(
            name=name,
            description=data.description,
            owner_id=owner.id,
            credits=0,
            subscription_type=data.subscription_type,
            subscription_status="active",
            billing_cycle_start=start,
            billing_cycle_end=billing_cycle_end(data.subscription_type, start),
            document_visibility=data.document_visibility,
            max_members=GROUP_MAX_MEMBERS[data.subscription_type],
            created_by=admin_id,
        )
        await self._members.create(
            group_id=group.id, account_id=owner.id, role="owner", invited_by=admin_id,
        )
        await self._accounts.set_group(owner.id, group.id)
        await GroupHolder(self._session, group).credit(
            credits,
            "initial_creation",
            admin_id=admin_id,
            description=f"Group created with {data.subscription_type} plan",
        )
        await self._session.refresh(group)

        logger.info(
            '[ADMIN ACTION] Admin %s created group "%s" with owner %s (%d credits)',
            admin_id, name, owner.email, credits,
        )
        return group

    async def update_group(self, group_id: str, data: GroupUpdate, *, admin_id: str) -> Group:
        await self.get_group(group_id)
        changes = {
            k: v for k, v in data.model_dump(exclude_unset=True).items()
            if v is not None or k == "description"
        }

        if "name" in changes:
            if not changes["name"].strip():
                raise ValidationError("Invalid group name")
            changes["name"] = changes["name"].strip()
        if "subscription_type" in changes:
            if changes["subscription_type"] not in GROUP_SUBSCRIPTION_CREDITS:
                raise ValidationError("Invalid subscription type")
            changes["max_members"] = GROUP_MAX_MEMBERS[changes["subscription_type"]]
        if "subscription_status" in changes and changes["subscription_status"] not in SUBSCRIPTION_STATUSES:
            raise ValidationError("Invalid subscription status")
        if "document_visibility" in changes and changes["document_visibility"] not in VISIBILITIES:
            raise ValidationError("Invalid document visibility")
        if data.max_members is not None and "subscription_type" not in changes:
            if not 1 <= data.max_members <= 100:
                raise ValidationError("Invalid max_members value")

        updated = await self._groups.update(group_id, **changes)
        logger.info("[ADMIN ACTION] Admin %s updated group %s: %s", admin_id, group_id, sorted(changes))
        return updated  # type: ignore[return-value]

    async def delete_group(self, group_id: str, *, admin_id: str) -> None:
        group = await self.get_group(group_id)
        detached = await self._accounts.clear_group_for_all(group_id)
        await self._groups.delete_with_children(group_id)
        logger.info(
            '[ADMIN ACTION] Admin %s deleted group "%s" (%d member(s) detached)',
            admin_id, group.name, detached,
        )

    # ------------------------------------------------------------------
    # Membership
    # ------------------------------------------------------------------

    async def add_member(
        self, group_id: str, user_id: str, *, role: str = "member", admin_id: str,
    ) -> GroupMember:
        if not user_id:
            raise ValidationError("User ID is required")
        if role not in MEMBER_ROLES:
            raise ValidationError('Invalid role. Must be "owner" or "member"')

        group = await self.get_group(group_id)
        if not group.is_active:
            raise ValidationError("Cannot add members to an inactive group")
        current = await self._members.count_for_group(group_id)
        if current >= group.max_members:
            raise ValidationError(
                f"Group has reached its maximum capacity of {group.max_members} members"
            )

        account = await self._accounts.get_by_id(user_id)
        if account is None:
            raise ValidationError("User not found")
        if account.group_id or await self._members.get_for_account(user_id):
            raise ValidationError("User is already a member of another group")

        member = await self._members.create(
            group_id=group_id, account_id=user_id, role=role, invited_by=admin_id,
        )
        await self._accounts.set_group(user_id, group_id)
        logger.info(
            '[ADMIN ACTION] Admin %s added %s to group "%s" as %s',
            admin_id, account.email, group.name, role,
        )
        return member

    async def remove_member(self, group_id: str, user_id: str, *, admin_id: str) -> None:
        if not user_id:
            raise ValidationError("User ID is required")
        group = await self.get_group(group_id)
        if user_id == group.owner_id:
            raise ValidationError(OWNER_REMOVAL_MESSAGE)

        membership = await self._members.get_membership(group_id, user_id)
        if membership is None:
            raise ValidationError("User is not a member of this group")
        if membership.role == "owner":
            raise ValidationError(OWNER_REMOVAL_MESSAGE)

        await self._members.remove(group_id, user_id)
        await self._accounts.set_group(user_id, None)
        logger.info(
            '[ADMIN ACTION] Admin %s removed %s from group "%s"', admin_id, user_id, group.name,
        )
