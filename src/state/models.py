from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


NOTES_PREFIX = "notes/"
NOTE_SUFFIX = ".json"

TITLE_MAX = 100
CONTENT_MAX = 50_000


def note_path(note_id: str) -> str:
    """Return the remote path for a note id: ``notes/<id>.json``."""
    return f"{NOTES_PREFIX}{note_id}{NOTE_SUFFIX}"


def note_id_from_path(path: str) -> Optional[str]:
    """Recover a note id from its remote path, or None if outside the namespace."""
    if not path.startswith(NOTES_PREFIX) or not path.endswith(NOTE_SUFFIX):
        return None
    note_id = path[len(NOTES_PREFIX) : -len(NOTE_SUFFIX)]
    return note_id or None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserIdentity(BaseModel):
    """Identity returned by the vault on code exchange.

    Only `username` is required; any other fields the server sends are kept
    so the cached identity round-trips unchanged.
    """

    model_config = ConfigDict(extra="allow")

    username: str


class Credentials(BaseModel):
    """The persisted session triple: all three fields, or nothing."""

    token: str
    password: str
    user: UserIdentity


class Note(BaseModel):
    """
    A note mirrored from the vault.

    Fields
    - id: opaque id derived from the creation timestamp (milliseconds).
    - title / content: plaintext after decryption, capped at TITLE_MAX / CONTENT_MAX.
    - updated_at: last write time; the cache is ordered by it, newest first.

    `path` is computed from `id` and is never stored separately.
    """

    id: str
    title: str = ""
    content: str = ""
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def path(self) -> str:
        return note_path(self.id)


class RemoteEntry(BaseModel):
    """One item of the vault listing."""

    path: str
    updated_at: datetime = Field(alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("updated_at")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        return v if v.tzinfo is not None else v.replace(tzinfo=timezone.utc)


class QuotaSnapshot(BaseModel):
    """
    Point-in-time storage usage. Always replaced wholesale by a fresh fetch.

    `quota_bytes` is None when the plan is unlimited.
    """

    model_config = ConfigDict(populate_by_name=True)

    used_bytes: int = Field(default=0, ge=0, alias="usedBytes")
    quota_bytes: Optional[int] = Field(default=None, ge=0, alias="quotaBytes")
    unlimited: bool = False

    @model_validator(mode="before")
    @classmethod
    def _unlimited_sentinel(cls, data):
        # The server may report the limit as the string "unlimited"
        if isinstance(data, dict):
            for name in ("quotaBytes", "quota_bytes"):
                if isinstance(data.get(name), str) and data[name].lower() == "unlimited":
                    data = {**data, name: None, "unlimited": True}
        return data


__all__ = [
    "CONTENT_MAX",
    "Credentials",
    "NOTES_PREFIX",
    "NOTE_SUFFIX",
    "Note",
    "QuotaSnapshot",
    "RemoteEntry",
    "TITLE_MAX",
    "UserIdentity",
    "note_id_from_path",
    "note_path",
    "utcnow",
]
