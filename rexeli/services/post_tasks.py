"""Best-effort work that runs after a successful extraction.

Each task runs in its own transaction: it is committed on success and rolled
back on failure, and a failure becomes a warning string instead of an error.
Tasks must close over plain values, not ORM instances, because a rollback
expires every instance loaded in the session.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@dataclass
class PostTask:
    name: str
    run: Callable[[], Awaitable[None]]
    warning: str


class PostSuccessTasks:
    def __init__(self, session: AsyncSession):
        self._session = session
        self._tasks: list[PostTask] = []

    def add(self, name: str, run: Callable[[], Awaitable[None]], *, warning: str) -> None:
        self._tasks.append(PostTask(name=name, run=run, warning=warning))

    @property
    def names(self) -> list[str]:
        return [t.name for t in self._tasks]

    async def run(self) -> list[str]:
        """Run every task in order; return the warnings of the ones that failed."""
        warnings: list[str] = []
        for task in self._tasks:
            try:
                await task.run()
                await self._session.commit()
            except Exception as exc:
                await self._session.rollback()
                logger.warning("Post-processing task '%s' failed: %s", task.name, exc, exc_info=True)
                warnings.append(task.warning)
        return warnings
