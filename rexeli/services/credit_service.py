"""Credit validation, deduction and balance queries.

Validation is advisory: it tells the caller whether the effective balance
covers the document right now. The conditional decrement performed by
``deduct_credits`` is what actually guards the balance, so a request that
loses a race after passing validation gets ``success=False`` back instead of
driving the balance negative.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from rexeli.core.exceptions import (
    AccountInactiveError,
    AccountNotFoundError,
    NotFoundError,
    ValidationError,
)
from rexeli.domain.account import Account
from rexeli.repositories.account import AccountRepository
from rexeli.repositories.group import GroupRepository
from rexeli.services.credit_holder import GroupHolder, IndividualHolder, resolve_holder
from rexeli.services.notifications import LowCreditNotice, schedule_low_credit_notice
from rexeli.services.subscription import low_credit_threshold

logger = logging.getLogger(__name__)

MAX_CREDIT_GRANT = 100_000


@dataclass
class CreditValidation:
    is_valid: bool
    message: str
    current_credits: int
    required_credits: int
    shortage: int = 0
    group_name: str | None = None
    holder_type: str = "individual"


@dataclass
class DeductionResult:
    success: bool
    remaining_credits: int
    error: str | None = None


def _plural(n: int, word: str) -> str:
    return f"{n} {word}" if n == 1 else f"{n} {word}s"


class CreditService:
    def __init__(self, session: AsyncSession):
        self._session = session
        self._accounts = AccountRepository(session)

    async def _load_account(self, account_id: str) -> Account:
        account = await self._accounts.get_by_id(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        if not account.is_active:
            raise AccountInactiveError()
        return account

    async def validate_credit_transaction(
        self, account_id: str, required_pages: int,
    ) -> CreditValidation:
        """Decide whether the account's effective balance covers ``required_pages``."""
        if required_pages < 1:
            raise ValidationError("Page count must be at least 1")

        account = await self._load_account(account_id)
        holder = await resolve_holder(self._session, account)
        balance = await holder.get_balance()

        if balance < required_pages:
            shortage = required_pages - balance
            if holder.kind == "group":
                message = (
                    f'Insufficient group credits. This document has {_plural(required_pages, "page")} '
                    f'but your group "{holder.name}" only has {_plural(balance, "credit")} remaining. '
                    f"You need {shortage} more. Please contact your group owner."
                )
            else:
                message = (
                    f'Insufficient credits. This document has {_plural(required_pages, "page")} '
                    f'but you only have {_plural(balance, "credit")} remaining. '
                    "Please upgrade your plan to continue."
                )
            logger.info(
                "Credit check failed for account %s: need %d, have %d (%s)",
                account_id, required_pages, balance, holder.kind,
            )
            return CreditValidation(
                is_valid=False,
                message=message,
                current_credits=balance,
                required_credits=required_pages,
                shortage=shortage,
                group_name=holder.name,
                holder_type=holder.kind,
            )

        balance_after = balance - required_pages
        threshold = low_credit_threshold(holder.plan)
        if balance_after <= threshold:
            schedule_low_credit_notice(
                LowCreditNotice(
                    email=account.email,
                    name=account.name,
                    balance_after=balance_after,
                    threshold=threshold,
                    plan=holder.plan,
                    group_name=holder.name,
                )
            )

        return CreditValidation(
            is_valid=True,
            message=(
                f"This document has {_plural(required_pages, 'page')} and will use "
                f"{_plural(required_pages, 'credit')}. You have {_plural(balance, 'credit')} remaining."
            ),
            current_credits=balance,
            required_credits=required_pages,
            group_name=holder.name,
            holder_type=holder.kind,
        )

    async def deduct_credits(self, account_id: str, pages: int) -> DeductionResult:
        """Take ``pages`` credits from the effective balance in one conditional update.

        The caller owns the transaction and commits it. A database error rolls
        the transaction back and comes back as ``success=False`` so an
        extraction that already ran is still returned.
        """
        account = await self._load_account(account_id)
        holder = await resolve_holder(self._session, account)
        kind, holder_id = holder.kind, holder.id
        before = await holder.get_balance()

        try:
            deducted = await holder.try_deduct(pages, account_id)
        except SQLAlchemyError:
            logger.exception(
                "Deduction of %d credit(s) from %s %s hit a database error",
                pages, kind, holder_id,
            )
            await self._session.rollback()
            return DeductionResult(
                success=False, remaining_credits=before, error="deduction_failed",
            )

        if deducted:
            remaining = await holder.get_balance()
            logger.info(
                "Deducted %d credit(s) from %s %s; %d remaining",
                pages, kind, holder_id, remaining,
            )
            return DeductionResult(success=True, remaining_credits=remaining)

        logger.warning(
            "Deduction of %d credit(s) from %s %s failed (balance %d)",
            pages, kind, holder_id, before,
        )
        return DeductionResult(
            success=False, remaining_credits=before, error="insufficient_credits",
        )

    async def get_credit_info(self, account_id: str) -> dict:
        account = await self._accounts.get_by_id(account_id)
        if account is None:
            raise AccountNotFoundError(account_id)
        holder = await resolve_holder(self._session, account)
        effective = await holder.get_balance()
        individual = (
            effective if holder.kind == "individual"
            else await IndividualHolder(self._session, account).get_balance()
        )
        return {
            "credits": effective,
            "individual_credits": individual,
            "credit_source": holder.kind,
            "group_id": holder.id if holder.kind == "group" else None,
            "group_name": holder.name,
            "subscription_type": account.subscription_type,
            "subscription_status": account.subscription_status,
            "monthly_usage": account.monthly_usage,
            "lifetime_usage": account.lifetime_usage,
            "billing_cycle_end": account.billing_cycle_end,
            "low_credit_threshold": low_credit_threshold(holder.plan),
        }

    async def add_credits(
        self,
        account_id: str,
        amount: int,
        *,
        transaction_type: str = "admin_add",
        admin_id: str | None = None,
        description: str | None = None,
    ) -> int:
        _check_grant(amount)
        account = await self._accounts.get_by_id(account_id)
        if account is None:
            raise NotFoundError("User", account_id)
        new_balance = await IndividualHolder(self._session, account).credit(
            amount, transaction_type, admin_id=admin_id, description=description,
        )
        logger.info(
            "[ADMIN ACTION] %s added %d credits to account %s (new balance %d)",
            admin_id or "system", amount, account_id, new_balance,
        )
        return new_balance

    async def add_group_credits(
        self,
        group_id: str,
        amount: int,
        *,
        transaction_type: str = "admin_add",
        admin_id: str | None = None,
        description: str | None = None,
    ) -> int:
        _check_grant(amount)
        group = await GroupRepository(self._session).get_by_id(group_id)
        if group is None:
            raise NotFoundError("Group", group_id)
        if not group.is_active:
            raise ValidationError("Cannot add credits to an inactive group")
        new_balance = await GroupHolder(self._session, group).credit(
            amount, transaction_type, admin_id=admin_id, description=description,
        )
        logger.info(
            "[ADMIN ACTION] %s added %d credits to group %s (new balance %d)",
            admin_id or "system", amount, group.name, new_balance,
        )
        return new_balance


def _check_grant(amount: int) -> None:
    if amount <= 0:
        raise ValidationError("Amount must be a positive number")
    if amount > MAX_CREDIT_GRANT:
        raise ValidationError(f"Amount cannot exceed {MAX_CREDIT_GRANT:,} credits")
