"""
Receipt file storage.

Receipts keep a storage path relative to the store root. The database row is
the source of truth; files are written before the row is flushed and removed
only after the transaction that dropped the row has committed.
"""

import logging
import re
import uuid
from pathlib import Path
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from travel_backend.app.core.clock import today
from travel_backend.app.core.exceptions import StorageError

logger = logging.getLogger("travel.storage")

PENDING_DELETES = "pending_file_deletes"


class FileStore(Protocol):
    def store(self, data: bytes, name: str) -> str: ...

    def delete(self, path: str) -> None: ...

    def exists(self, path: str) -> bool: ...


def sanitize_filename(value: str) -> str:
    value = Path(value).name
    safe = re.sub(r"[^A-Za-z0-9._-]", "_", value)
    return safe.strip("._") or "receipt"


class LocalFileStore:
    """Stores files under ``root/<YYYYMMDD>/<random>_<name>``."""

    def __init__(self, root):
        self.root = Path(root)

    def _resolve(self, path: str) -> Path:
        root = self.root.resolve()
        resolved = (root / path).resolve()
        if resolved != root and root not in resolved.parents:
            raise StorageError("Unsafe storage path", details={"path": path})
        return resolved

    def store(self, data: bytes, name: str) -> str:
        relative = f"{today():%Y%m%d}/{uuid.uuid4().hex[:12]}_{sanitize_filename(name)}"
        target = self._resolve(relative)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise StorageError("Failed to store receipt file", details={"name": name}) from exc
        logger.info("Stored receipt file %s (%d bytes)", relative, len(data))
        return relative

    def delete(self, path: str) -> None:
        target = self._resolve(path)
        try:
            target.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError("Failed to delete receipt file", details={"path": path}) from exc

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()


def schedule_delete(db: AsyncSession, file_store: FileStore, path: str) -> None:
    """Queue ``path`` for removal once the current transaction commits."""
    transaction = db.sync_session.get_transaction()
    owner, queue = db.info.get(PENDING_DELETES, (None, []))
    if owner is not transaction:
        # Left over from a rolled back transaction
        queue = []
        db.info[PENDING_DELETES] = (transaction, queue)
    queue.append((file_store, path))


async def commit_and_release(db: AsyncSession) -> None:
    """
    Commit the session, then delete the files queued by schedule_delete.

    Files queued by a transaction that was rolled back stay on disk. A file
    that cannot be removed is logged and left behind; the commit stands.
    """
    transaction = db.sync_session.get_transaction()
    owner, queue = db.info.pop(PENDING_DELETES, (None, []))
    await db.commit()

    if owner is not transaction:
        return
    for file_store, path in queue:
        try:
            file_store.delete(path)
        except StorageError:
            logger.exception("Failed to release receipt file %s", path)
