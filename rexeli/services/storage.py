"""Object storage for uploads and training exports (local filesystem backend)."""

from __future__ import annotations

import asyncio
import logging
import re
import uuid
from dataclasses import dataclass
from pathlib import Path

from rexeli.core.config import settings
from rexeli.core.exceptions import NotFoundError

logger = logging.getLogger(__name__)

DOCUMENTS_BUCKET = "documents"
TRAINING_BUCKET = "training-documents"
EXPORTS_BUCKET = "training-exports"

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass(frozen=True)
class StoredFile:
    path: str
    url: str
    size: int


def safe_file_name(name: str) -> str:
    cleaned = _UNSAFE.sub("_", name).strip("._")
    return cleaned or "file"


class LocalStorage:
    def __init__(self, root: str | None = None, public_url: str | None = None):
        self._root = Path(root or settings.storage_dir)
        self._public_url = (public_url or settings.storage_public_url).rstrip("/")

    def url_for(self, path: str) -> str:
        return f"{self._public_url}/{path}"

    def _resolve(self, path: str) -> Path:
        target = (self._root / path).resolve()
        if self._root.resolve() not in target.parents:
            raise NotFoundError("File", path)
        return target

    async def save(self, bucket: str, prefix: str, file_name: str, contents: bytes) -> StoredFile:
        path = f"{bucket}/{prefix}/{uuid.uuid4().hex[:12]}_{safe_file_name(file_name)}"
        await self.write(path, contents)
        return StoredFile(path=path, url=self.url_for(path), size=len(contents))

    async def write(self, path: str, contents: bytes) -> None:
        target = self._resolve(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(contents)

        await asyncio.to_thread(_write)
        logger.debug("Stored %s (%d bytes)", path, len(contents))

    async def read(self, path: str) -> bytes:
        target = self._resolve(path)
        if not target.is_file():
            raise NotFoundError("File", path)
        return await asyncio.to_thread(target.read_bytes)


def get_storage() -> LocalStorage:
    return LocalStorage()
