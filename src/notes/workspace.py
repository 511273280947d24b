from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

from common.vault import VaultClient, VaultError, VaultNotFoundError, VaultQuotaExceededError
from state.models import CONTENT_MAX, TITLE_MAX, Note, note_path, utcnow

from .cache import NoteCache
from .debounce import DEFAULT_DELAY_SECONDS, Debouncer
from .preferences import PreferencesManager
from .quota import QuotaTracker


QUOTA_EXCEEDED_MESSAGE = "Storage limit exceeded. Please upgrade your plan."
SAVE_FAILED_MESSAGE = "Failed to save note"
DELETE_FAILED_MESSAGE = "Failed to delete note"

logger = logging.getLogger(__name__)


class NotesWorkspace:
    """
    Editing surface over the note cache with debounced, optimistic sync.

    Usage
    - `await load()` fills the cache, the quota snapshot and preferences.
    - `create()` / `select(id)` set the active note and its edit buffer.
    - `update(title=..., content=...)` edits the buffer and (re)starts the save
      timer for the active note; only the last state of a burst is written.
    - `await delete(id)` removes a note remotely, then locally.
    - `await aclose()` cancels pending saves (unmount).

    The edit buffer is never rolled back. A failed write leaves the note dirty
    with an error message until a later write for it succeeds.
    """

    def __init__(
        self,
        vault: VaultClient,
        *,
        debounce_seconds: float = DEFAULT_DELAY_SECONDS,
        quota: Optional[QuotaTracker] = None,
        preferences: Optional[PreferencesManager] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._vault = vault
        self.cache = NoteCache(vault)
        self.quota = quota or QuotaTracker(vault)
        self.preferences = preferences or PreferencesManager(vault)
        self._debouncer = Debouncer(debounce_seconds)
        self._clock = clock
        self._writes_in_flight = 0

        self.selected_id: Optional[str] = None
        self.title = ""
        self.content = ""
        self.loading = False
        self.syncing = False

    # -------- Status --------
    @property
    def selected(self) -> Optional[Note]:
        return self.cache.get(self.selected_id) if self.selected_id else None

    @property
    def saving(self) -> bool:
        return self._writes_in_flight > 0

    @property
    def save_error(self) -> Optional[str]:
        status = self.cache.status(self.selected_id) if self.selected_id else None
        return status.error if status else None

    @property
    def dirty(self) -> bool:
        status = self.cache.status(self.selected_id) if self.selected_id else None
        return bool(status and status.dirty)

    @property
    def status_label(self) -> str:
        if self.saving:
            return "Saving..."
        return self.save_error or "All changes saved"

    @property
    def sync_label(self) -> str:
        return "Syncing..." if self.syncing else "Synced"

    def has_pending_save(self, note_id: Optional[str] = None) -> bool:
        note_id = note_id or self.selected_id
        return note_id is not None and self._debouncer.is_pending(note_id)

    # -------- Lifecycle --------
    async def load(self) -> None:
        self.loading = True
        self.syncing = True
        try:
            await asyncio.gather(
                self.cache.load_all(),
                self.quota.refresh(),
                self.preferences.load(),
            )
        finally:
            self.loading = False
            self.syncing = False

    async def wait_idle(self) -> None:
        """Wait for pending and in-flight saves to settle."""
        await self._debouncer.wait_idle()

    async def aclose(self) -> None:
        await self._debouncer.aclose()

    # -------- Editing --------
    def create(self) -> Note:
        self._leave_selection()
        note = self.cache.create(now=self._clock())
        self.selected_id = note.id
        self.title = note.title
        self.content = note.content
        return note

    def select(self, note_id: str) -> Note:
        note = self.cache.get(note_id)
        if note is None:
            raise KeyError(note_id)
        self._leave_selection()
        self.selected_id = note.id
        self.title = note.title
        self.content = note.content
        status = self.cache.status(note.id)
        if status and status.dirty and status.draft:
            # Unconfirmed edits win over the last synced copy
            self.title, self.content = status.draft
        return note

    def update(self, *, title: Optional[str] = None, content: Optional[str] = None) -> None:
        """Edit the active buffer and restart the save timer for the active note."""
        note_id = self.selected_id
        if note_id is None:
            raise RuntimeError("No note selected")

        new_title = self.title if title is None else title[:TITLE_MAX]
        new_content = self.content if content is None else content[:CONTENT_MAX]
        if new_title == self.title and new_content == self.content:
            return
        self.title = new_title
        self.content = new_content

        status = self.cache.track(note_id)
        status.dirty = True
        status.draft = (new_title, new_content)
        status.version += 1
        version = status.version

        async def save() -> None:
            await self._write(note_id, new_title, new_content, version)

        self._debouncer.schedule(note_id, save)

    async def delete(self, note_id: Optional[str] = None) -> bool:
        """Delete a note (default: the selected one). Returns True on success."""
        note_id = note_id or self.selected_id
        if note_id is None or note_id not in self.cache:
            return False

        self._debouncer.cancel(note_id)
        # A write already on the wire must land before the delete, not after it
        await self._debouncer.wait(note_id)
        try:
            await self._vault.delete(note_path(note_id))
        except VaultNotFoundError:
            # Never written remotely (or already gone): nothing to remove there
            pass
        except VaultError as e:
            logger.error(f"Failed to delete {note_path(note_id)}: {e}")
            self._set_error(note_id, str(e) or DELETE_FAILED_MESSAGE)
            return False

        self.cache.remove(note_id)
        if self.selected_id == note_id:
            self.selected_id = None
            self.title = ""
            self.content = ""
        await self.quota.refresh()
        return True

    # -------- Internal --------
    def _leave_selection(self) -> None:
        if self.selected_id is not None:
            self._debouncer.cancel(self.selected_id)

    async def _write(self, note_id: str, title: str, content: str, version: int) -> None:
        path = note_path(note_id)
        self._writes_in_flight += 1
        try:
            await self._vault.put(path, {"title": title, "content": content})
        except VaultQuotaExceededError as e:
            logger.warning(f"Quota exceeded while saving {path}: {e}")
            self._set_error(note_id, QUOTA_EXCEEDED_MESSAGE)
            return
        except VaultError as e:
            logger.error(f"Failed to save {path}: {e}")
            self._set_error(note_id, str(e) or SAVE_FAILED_MESSAGE)
            return
        finally:
            self._writes_in_flight -= 1

        self.cache.apply_write(
            note_id,
            title=title,
            content=content,
            updated_at=self._clock(),
            version=version,
        )
        await self.quota.refresh()

    def _set_error(self, note_id: str, message: str) -> None:
        status = self.cache.status(note_id)
        if status is not None:
            status.error = message


__all__ = [
    "DELETE_FAILED_MESSAGE",
    "NotesWorkspace",
    "QUOTA_EXCEEDED_MESSAGE",
    "SAVE_FAILED_MESSAGE",
]
