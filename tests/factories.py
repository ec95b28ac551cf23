"""Row builders and request helpers shared by the test modules."""

import fitz
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from rexeli.core.config import settings
from rexeli.domain.account import Account
from rexeli.domain.group import Group, GroupMember


def make_token(account_id: str) -> str:
    return jwt.encode(
        {"sub": account_id}, settings.auth_jwt_secret, algorithm=settings.auth_jwt_algorithm,
    )


def auth_headers(account: Account) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(account.id)}"}


def pdf_bytes(pages: int) -> bytes:
    doc = fitz.open()
    for _ in range(pages):
        doc.new_page()
    data = doc.tobytes()
    doc.close()
    return data


async def create_account(session: AsyncSession, email: str, **kwargs) -> Account:
    account = Account(email=email, name=email.split("@")[0], **kwargs)
    session.add(account)
    await session.commit()
    return account


async def create_group(
    session: AsyncSession, owner: Account, *, credits: int = 0, **kwargs,
) -> Group:
    group = Group(
        name=kwargs.pop("name", "Acme Realty"),
        owner_id=owner.id,
        credits=credits,
        subscription_type=kwargs.pop("subscription_type", "professional_monthly"),
        **kwargs,
    )
    session.add(group)
    await session.flush()
    session.add(GroupMember(group_id=group.id, account_id=owner.id, role="owner"))
    owner.group_id = group.id
    await session.commit()
    return group


async def add_member(session: AsyncSession, group: Group, account: Account) -> None:
    session.add(GroupMember(group_id=group.id, account_id=account.id, role="member"))
    account.group_id = group.id
    await session.commit()
