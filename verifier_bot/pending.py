"""Per-user pending verification files."""

from __future__ import annotations

import asyncio
import logging
import weakref
from pathlib import Path
from typing import Final

from .errors import DuplicateSubmissionError, StateMismatchError
from .records import PendingRecord

log: Final = logging.getLogger("mod-gateway")


class PendingStore:
    """One ``<user_id>.txt`` file per in-progress verification.

    Files are tiny and local, so reads and writes happen inline. Callers that
    read-modify-write a record must hold :meth:`lock` for that user.
    """

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)
        self._directory.mkdir(parents=True, exist_ok=True)
        # Entries vanish once no task holds or waits on the lock.
        self._locks: weakref.WeakValueDictionary[int, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def path_for(self, user_id: int) -> Path:
        return self._directory / f"{user_id}.txt"

    def lock(self, user_id: int) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = self._locks[user_id] = asyncio.Lock()
        return lock

    def exists(self, user_id: int) -> bool:
        return self.path_for(user_id).is_file()

    def create(self, user_id: int, external_id: str) -> PendingRecord:
        content = PendingRecord.initial_text(external_id)
        try:
            with self.path_for(user_id).open("x", encoding="utf-8") as handle:
                handle.write(content)
        except FileExistsError as exc:
            raise DuplicateSubmissionError(user_id) from exc
        log.info("Created pending record for %s: %s", user_id, content)
        return PendingRecord(external_id=external_id)

    def read(self, user_id: int) -> PendingRecord:
        try:
            text = self.path_for(user_id).read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise StateMismatchError(f"No pending record for {user_id}") from exc
        return PendingRecord.from_text(text)

    def append_selection(self, user_id: int, token: str) -> PendingRecord:
        path = self.path_for(user_id)
        if not path.is_file():
            raise StateMismatchError(f"No pending record for {user_id}")
        with path.open("a", encoding="utf-8") as handle:
            handle.write(token)
        return self.read(user_id)

    def discard(self, user_id: int) -> bool:
        """Delete the record. Returns False if there was nothing to delete."""
        try:
            self.path_for(user_id).unlink()
        except FileNotFoundError:
            return False
        log.info("Deleted pending record for %s", user_id)
        return True
