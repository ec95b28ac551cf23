"""Processed-document history repository."""

from __future__ import annotations

from sqlalchemy import or_

from rexeli.domain.document import UserDocument
from rexeli.repositories.base import BaseRepository


class UserDocumentRepository(BaseRepository[UserDocument]):
    model = UserDocument

    async def list_visible(
        self,
        account_id: str,
        shared_group_id: str | None,
        *,
        document_type: str | None,
        offset: int,
        limit: int,
        order_by: str = "created_at",
        order: str = "desc",
    ) -> tuple[list[UserDocument], int]:
        """Own documents, plus every document stamped with a shared group."""
        q = self._base_query()
        if shared_group_id:
            q = q.where(
                or_(
                    UserDocument.account_id == account_id,
                    UserDocument.group_id == shared_group_id,
                )
            )
        else:
            q = q.where(UserDocument.account_id == account_id)
        if document_type:
            q = q.where(UserDocument.document_type == document_type)
        return await self._paginate(
            q, offset=offset, limit=limit, order_by=order_by, order=order,
        )
