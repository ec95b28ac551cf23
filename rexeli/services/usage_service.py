"""Self-service views: usage history, usage statistics and document history."""

from __future__ import annotations

from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from rexeli.core.exceptions import NotFoundError
from rexeli.core.pagination import PaginationParams
from rexeli.domain.account import Account
from rexeli.domain.document import UserDocument
from rexeli.domain.mixins import utcnow
from rexeli.repositories.document import UserDocumentRepository
from rexeli.repositories.group import GroupMemberRepository, GroupRepository
from rexeli.repositories.ledger import CreditRepository, UsageLogRepository
from rexeli.services.credit_service import CreditService


def usage_stats(totals: dict[str, int]) -> dict[str, float | int]:
    total = totals["total"]
    successful = totals["successful"]
    return {
        "total_processed": total,
        "successful": successful,
        "failed": total - successful,
        "total_pages": totals["pages"],
        "total_credits_used": totals["credits"],
        "success_rate": round(successful / total * 100, 1) if total else 0.0,
        "avg_pages_per_doc": round(totals["pages"] / total, 1) if total else 0.0,
    }


class UsageService:
    def __init__(self, session: AsyncSession):
        self._session = session
        self._usage = UsageLogRepository(session)
        self._credits = CreditRepository(session)
        self._documents = UserDocumentRepository(session)
        self._groups = GroupRepository(session)
        self._members = GroupMemberRepository(session)

    async def get_usage(self, account_id: str) -> dict:
        logs = await self._usage.recent_for_account(account_id, limit=50)
        transactions = await self._credits.list_transactions(account_id, limit=30)
        totals = await self._usage.totals(account_id=account_id)
        return {
            "usage_logs": logs,
            "transactions": transactions,
            "stats": usage_stats(totals),
        }

    async def _shared_group_id(self, account: Account) -> str | None:
        """The account's group id when that group shares documents between members."""
        if not account.group_id:
            return None
        group = await self._groups.get_by_id(account.group_id)
        if group is None or not group.is_active or group.document_visibility != "shared":
            return None
        return group.id

    async def list_documents(
        self,
        account: Account,
        pagination: PaginationParams,
        document_type: str | None = None,
    ) -> tuple[list[UserDocument], int]:
        return await self._documents.list_visible(
            account.id,
            await self._shared_group_id(account),
            document_type=document_type,
            offset=pagination.offset,
            limit=pagination.limit,
            order_by=pagination.sort,
            order=pagination.order,
        )

    async def get_document(self, account: Account, document_id: str) -> UserDocument:
        document = await self._documents.get_by_id(document_id)
        if document is None:
            raise NotFoundError("Document", document_id)
        if document.account_id != account.id:
            shared = await self._shared_group_id(account)
            if shared is None or document.group_id != shared:
                raise NotFoundError("Document", document_id)
        return document

    async def dashboard(self, account: Account) -> dict[str, Any]:
        """Balance, headline stats, recent documents and group membership in one call."""
        month_start = utcnow().replace(day=1, hour=0, minute=0, second=0, microsecond=0)
        totals = await self._usage.totals(account_id=account.id)
        monthly = await self._usage.totals(account_id=account.id, since=month_start)
        recent, _ = await self._documents.list_visible(
            account.id,
            await self._shared_group_id(account),
            document_type=None,
            offset=0,
            limit=5,
            order_by="created_at",
            order="desc",
        )
        return {
            "credits": await CreditService(self._session).get_credit_info(account.id),
            "stats": {
                "total_documents": totals["total"],
                "monthly_documents": monthly["total"],
                "successful": totals["successful"],
                "total_pages": totals["pages"],
                "success_rate": usage_stats(totals)["success_rate"],
            },
            "recent_documents": recent,
            "group": await self._group_summary(account),
        }

    async def _group_summary(self, account: Account) -> dict[str, Any] | None:
        if not account.group_id:
            return None
        group = await self._groups.get_by_id(account.group_id)
        if group is None:
            return None
        membership = await self._members.get_membership(group.id, account.id)
        return {
            "id": group.id,
            "name": group.name,
            "description": group.description,
            "credits": group.credits,
            "subscription_type": group.subscription_type,
            "subscription_status": group.subscription_status,
            "document_visibility": group.document_visibility,
            "is_active": group.is_active,
            "role": membership.role if membership else "member",
            "is_owner": group.owner_id == account.id,
            "member_count": await self._members.count_for_group(group.id),
        }
