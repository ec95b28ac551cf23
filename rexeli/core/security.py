"""Bearer-token verification for tokens issued by the external auth provider.

This service never issues tokens. It only verifies the provider's signature
and loads the account named by the ``sub`` claim.
"""

import logging
from typing import Any

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from rexeli.core.config import settings
from rexeli.core.exceptions import ForbiddenError, UnauthorizedError
from rexeli.db.base import get_db
from rexeli.domain.account import Account
from rexeli.repositories.account import AccountRepository

logger = logging.getLogger(__name__)

auth_scheme = HTTPBearer(auto_error=False)


def decode_access_token(token: str) -> dict[str, Any]:
    """Decode and validate a provider-signed access token."""
    try:
        payload = jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            options={"verify_aud": False},
        )
    except JWTError as exc:
        raise UnauthorizedError("Invalid or expired access token.") from exc

    subject = str(payload.get("sub", "")).strip()
    if not subject:
        raise UnauthorizedError("Access token missing subject.")
    return payload


async def get_current_account(
    credentials: HTTPAuthorizationCredentials | None = Depends(auth_scheme),
    session: AsyncSession = Depends(get_db),
) -> Account:
    """Resolve the authenticated account from the Bearer token."""
    if not credentials or credentials.scheme.lower() != "bearer":
        raise UnauthorizedError("Missing Bearer access token.")

    payload = decode_access_token(credentials.credentials)
    account = await AccountRepository(session).get_by_id(str(payload["sub"]))
    if account is None:
        raise UnauthorizedError("Unknown account.")
    return account


async def require_admin(account: Account = Depends(get_current_account)) -> Account:
    if account.role != "admin":
        logger.warning("Non-admin account %s attempted an admin action", account.id)
        raise ForbiddenError("Admin access required")
    return account
