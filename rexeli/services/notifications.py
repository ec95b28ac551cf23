"""Low-balance email notices.

Notices are fire-and-forget: they are scheduled on the running loop and any
failure is logged, never raised to the request that triggered them.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

import httpx

from rexeli.core.config import settings

logger = logging.getLogger(__name__)

# Strong references so scheduled notices are not garbage-collected mid-flight
_pending: set[asyncio.Task] = set()


@dataclass(frozen=True)
class LowCreditNotice:
    email: str
    name: str | None
    balance_after: int
    threshold: int
    plan: str
    group_name: str | None = None

    @property
    def out_of_credits(self) -> bool:
        return self.balance_after <= 0

    @property
    def subject(self) -> str:
        if self.out_of_credits:
            return "Out of Credits - Action Required - RExeli"
        return "Low Credits Warning - RExeli"

    def text(self) -> str:
        greeting = f"Hi {self.name}," if self.name else "Hi,"
        pool = f'Your group "{self.group_name}"' if self.group_name else "Your account"
        if self.out_of_credits:
            body = (
                f"{pool} has run out of credits. "
                "Upgrade your plan or purchase more credits to keep processing documents."
            )
        else:
            body = (
                f"{pool} has {self.balance_after} credit(s) remaining "
                f"on the {self.plan} plan. Consider upgrading before you run out."
            )
        return f"{greeting}\n\n{body}\n\nThe RExeli Team"


async def send_email(to: str, subject: str, text: str) -> bool:
    """Deliver through the transactional email API, or log when none is configured."""
    if not settings.email_enabled:
        logger.info("Email delivery disabled; would send '%s' to %s", subject, to)
        return False

    async with httpx.AsyncClient(timeout=settings.email_timeout) as client:
        response = await client.post(
            settings.email_api_url,
            headers={"Authorization": f"Bearer {settings.email_api_key}"},
            json={"from": settings.email_from, "to": [to], "subject": subject, "text": text},
        )
        response.raise_for_status()
    logger.info("Sent '%s' to %s", subject, to)
    return True


async def send_low_credit_notice(notice: LowCreditNotice) -> None:
    try:
        await send_email(notice.email, notice.subject, notice.text())
    except httpx.HTTPError as exc:
        logger.warning("Low-credit notice to %s failed: %s", notice.email, exc)


def schedule_low_credit_notice(notice: LowCreditNotice) -> None:
    task = asyncio.create_task(send_low_credit_notice(notice))
    _pending.add(task)
    task.add_done_callback(_pending.discard)
