from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterator, List, Optional, Tuple

from common.vault import VaultClient, VaultError
from state.models import Note, RemoteEntry, note_id_from_path, utcnow


PLACEHOLDER_TITLE = "Untitled"

logger = logging.getLogger(__name__)


@dataclass
class SyncStatus:
    """
    Local sync bookkeeping for one note.

    - dirty: the edit buffer holds changes not yet confirmed by a write.
    - error: user-facing message of the last failed write/delete, if any.
    - version: bumped on every local edit; a write only marks the note clean
      when it carried the latest version.
    - draft: the (title, content) of the latest local edit while dirty, so the
      edit buffer can be restored after switching away from the note.
    """

    dirty: bool = False
    error: Optional[str] = None
    version: int = 0
    draft: Optional[Tuple[str, str]] = None


class NoteCache:
    """
    Ordered in-memory mirror of the notes stored in the vault.

    Order is newest `updated_at` first and is recomputed whenever an entry's
    `updated_at` changes. Removing an entry leaves the others in place.
    """

    def __init__(self, vault: VaultClient) -> None:
        self._vault = vault
        self._notes: List[Note] = []
        self._status: Dict[str, SyncStatus] = {}
        self._last_id = 0

    # -------- Read access --------
    @property
    def notes(self) -> List[Note]:
        return list(self._notes)

    def ids(self) -> List[str]:
        return [n.id for n in self._notes]

    def get(self, note_id: str) -> Optional[Note]:
        for note in self._notes:
            if note.id == note_id:
                return note
        return None

    def status(self, note_id: str) -> Optional[SyncStatus]:
        return self._status.get(note_id)

    def track(self, note_id: str) -> SyncStatus:
        """Sync status for a cached note, created on first use."""
        if note_id not in self:
            raise KeyError(note_id)
        return self._status.setdefault(note_id, SyncStatus())

    def __contains__(self, note_id: object) -> bool:
        return any(n.id == note_id for n in self._notes)

    def __iter__(self) -> Iterator[Note]:
        return iter(list(self._notes))

    def __len__(self) -> int:
        return len(self._notes)

    # -------- Remote load --------
    async def load_all(self) -> List[Note]:
        """Replace the cache with every note in the vault.

        Notes are fetched concurrently. A note whose fetch fails is logged and
        left out; a failed listing is logged and leaves the cache unchanged.
        """
        try:
            entries = await self._vault.list()
        except VaultError as e:
            logger.error(f"Failed to load notes: {e}")
            return self.notes

        note_entries = [e for e in entries if note_id_from_path(e.path) is not None]
        fetched = await asyncio.gather(*(self._fetch(e) for e in note_entries))
        notes = [n for n in fetched if n is not None]
        notes.sort(key=lambda n: n.updated_at, reverse=True)

        self._notes = notes
        self._status = {n.id: SyncStatus() for n in notes}
        return self.notes

    async def _fetch(self, entry: RemoteEntry) -> Optional[Note]:
        note_id = note_id_from_path(entry.path)
        try:
            data = await self._vault.get(entry.path)
        except VaultError as e:
            logger.error(f"Failed to load note {entry.path}: {e}")
            return None
        return Note(
            id=note_id,
            title=str(data.get("title") or ""),
            content=str(data.get("content") or ""),
            updated_at=entry.updated_at,
        )

    # -------- Local mutations --------
    def new_id(self) -> str:
        """Millisecond timestamp id, bumped past the last one issued or cached."""
        candidate = int(time.time() * 1000)
        if candidate <= self._last_id:
            candidate = self._last_id + 1
        while str(candidate) in self:
            candidate += 1
        self._last_id = candidate
        return str(candidate)

    def create(self, *, now: Optional[datetime] = None) -> Note:
        """Insert a local-only note at the front. Nothing is written remotely."""
        note = Note(id=self.new_id(), title=PLACEHOLDER_TITLE, content="", updated_at=now or utcnow())
        self._notes.insert(0, note)
        self._status[note.id] = SyncStatus()
        return note

    def apply_write(
        self,
        note_id: str,
        *,
        title: str,
        content: str,
        updated_at: datetime,
        version: Optional[int] = None,
    ) -> bool:
        """Record a confirmed write. Returns False if the note is no longer cached."""
        note = self.get(note_id)
        if note is None:
            return False
        note.title = title
        note.content = content
        note.updated_at = updated_at
        status = self.track(note_id)
        status.error = None
        if version is None or status.version == version:
            status.dirty = False
            status.draft = None
        self._sort()
        return True

    def remove(self, note_id: str) -> Optional[Note]:
        note = self.get(note_id)
        if note is None:
            return None
        self._notes = [n for n in self._notes if n.id != note_id]
        self._status.pop(note_id, None)
        return note

    def _sort(self) -> None:
        self._notes.sort(key=lambda n: n.updated_at, reverse=True)


__all__ = [
    "NoteCache",
    "PLACEHOLDER_TITLE",
    "SyncStatus",
]
