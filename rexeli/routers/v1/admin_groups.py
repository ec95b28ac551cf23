"""Admin group management endpoints: lifecycle, members and the shared credit pool."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from rexeli.core.pagination import PaginationParams
from rexeli.core.response import DataResponse, MessageResponse
from rexeli.core.security import require_admin
from rexeli.db.base import get_db
from rexeli.domain.account import Account
from rexeli.schemas.common import CreditGrant
from rexeli.schemas.group import (
    CapacityOut,
    CreditBalanceOut,
    GroupCreate,
    GroupCreditsOut,
    GroupListOut,
    GroupOut,
    GroupStatsOut,
    GroupTransactionOut,
    GroupUpdate,
    MemberAdd,
    MemberOut,
    MembersOut,
)
from rexeli.services.credit_service import CreditService
from rexeli.services.group_service import GroupService

router = APIRouter(prefix="/admin/groups", tags=["Admin: Groups"])


def _svc(session: AsyncSession) -> GroupService:
    return GroupService(session)


def _group_out(group, member_count: int) -> GroupOut:
    out = GroupOut.model_validate(group)
    out.member_count = member_count
    return out


# ------------------------------------------------------------------
# Groups
# ------------------------------------------------------------------

@router.get("", response_model=DataResponse[GroupListOut])
async def list_groups(
    filter_status: Optional[str] = Query(default=None, alias="status"),
    pagination: PaginationParams = Depends(),
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    """List groups with member counts and overall statistics."""
    groups, total, counts, stats = await _svc(session).list_groups(pagination, status=filter_status)
    return {
        "data": GroupListOut(
            groups=[_group_out(g, counts.get(g.id, 0)) for g in groups],
            total=total,
            stats=GroupStatsOut(**stats),
        )
    }


@router.post("", response_model=DataResponse[GroupOut], status_code=status.HTTP_201_CREATED)
async def create_group(
    body: GroupCreate,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    group = await _svc(session).create_group(body, admin_id=admin.id)
    return {"data": _group_out(group, 1), "message": "Group created successfully"}


@router.get("/{group_id}", response_model=DataResponse[GroupOut])
async def get_group(
    group_id: str,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    svc = _svc(session)
    group = await svc.get_group(group_id)
    return {"data": _group_out(group, await svc.member_count(group_id))}


@router.patch("/{group_id}", response_model=DataResponse[GroupOut])
async def update_group(
    group_id: str,
    body: GroupUpdate,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    svc = _svc(session)
    group = await svc.update_group(group_id, body, admin_id=admin.id)
    return {"data": _group_out(group, await svc.member_count(group_id))}


@router.delete("/{group_id}", response_model=MessageResponse)
async def delete_group(
    group_id: str,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    await _svc(session).delete_group(group_id, admin_id=admin.id)
    return MessageResponse(message="Group deleted successfully")


# ------------------------------------------------------------------
# Members
# ------------------------------------------------------------------

@router.get("/{group_id}/members", response_model=DataResponse[MembersOut])
async def list_members(
    group_id: str,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    pairs, group = await _svc(session).list_members(group_id)
    members = [
        MemberOut(
            id=m.id,
            account_id=a.id,
            email=a.email,
            name=a.name,
            role=m.role,
            is_active=m.is_active,
            joined_at=m.joined_at,
        )
        for m, a in pairs
    ]
    return {
        "data": MembersOut(
            members=members,
            capacity=CapacityOut(
                current=len(members),
                max=group.max_members,
                can_add_more=len(members) < group.max_members,
            ),
        )
    }


@router.post("/{group_id}/members", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def add_member(
    group_id: str,
    body: MemberAdd,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    await _svc(session).add_member(group_id, body.user_id, role=body.role, admin_id=admin.id)
    return MessageResponse(message="Member added successfully")


@router.delete("/{group_id}/members", response_model=MessageResponse)
async def remove_member(
    group_id: str,
    user_id: str = Query(default="", alias="userId"),
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    await _svc(session).remove_member(group_id, user_id, admin_id=admin.id)
    return MessageResponse(message="Member removed successfully")


# ------------------------------------------------------------------
# Credits
# ------------------------------------------------------------------

@router.get("/{group_id}/credits", response_model=DataResponse[GroupCreditsOut])
async def group_credit_history(
    group_id: str,
    pagination: PaginationParams = Depends(),
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    balance, transactions, total = await _svc(session).list_credit_history(group_id, pagination)
    return {
        "data": GroupCreditsOut(
            group_id=group_id,
            credits=balance,
            transactions=[GroupTransactionOut.model_validate(t) for t in transactions],
            total=total,
        )
    }


@router.post("/{group_id}/credits", response_model=DataResponse[CreditBalanceOut])
async def add_group_credits(
    group_id: str,
    body: CreditGrant,
    admin: Account = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
):
    new_balance = await CreditService(session).add_group_credits(
        group_id,
        body.amount,
        admin_id=admin.id,
        description=body.description or f"Admin credit grant by {admin.email}",
    )
    return {
        "data": CreditBalanceOut(new_balance=new_balance),
        "message": f"Successfully added {body.amount} credits to group",
    }
