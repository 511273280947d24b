from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Tuple

from pydantic import BaseModel

from common.vault import VaultClient, VaultError


THEMES: Tuple[str, ...] = ("light", "dark", "auto")
TIMEZONES: Tuple[str, ...] = (
    "UTC",
    "America/New_York",
    "America/Chicago",
    "America/Denver",
    "America/Los_Angeles",
    "Europe/London",
    "Europe/Paris",
    "Asia/Tokyo",
    "Asia/Shanghai",
    "Australia/Sydney",
)
LANGUAGES: Tuple[str, ...] = ("en", "es", "fr", "de", "ja", "ru")

OPTIONS: Dict[str, Tuple[str, ...]] = {
    "theme": THEMES,
    "timezone": TIMEZONES,
    "language": LANGUAGES,
}

logger = logging.getLogger(__name__)


class Preferences(BaseModel):
    """User preferences, stored remotely as the account's metadata blob."""

    theme: str = "light"
    timezone: str = "UTC"
    language: str = "en"

    def merged(self, remote: Mapping[str, Any]) -> "Preferences":
        """Overlay known string keys from `remote`; everything else is ignored."""
        updates = {k: v for k, v in remote.items() if k in OPTIONS and isinstance(v, str)}
        return self.model_copy(update=updates)


class PreferencesManager:
    """
    Loads and saves preferences through the vault metadata endpoints.

    Loading merges the remote values over the current ones. Saving sends the
    whole mapping. Failures are logged; local values are kept either way.
    """

    def __init__(self, vault: VaultClient, *, initial: Preferences | None = None) -> None:
        self._vault = vault
        self.preferences = initial or Preferences()
        self.loading = False
        self.saving = False

    async def load(self) -> Preferences:
        self.loading = True
        try:
            remote = await self._vault.get_metadata()
        except VaultError as e:
            logger.error(f"Failed to load preferences: {e}")
            return self.preferences
        finally:
            self.loading = False
        if remote:
            self.preferences = self.preferences.merged(remote)
        return self.preferences

    async def update(self, key: str, value: str) -> Preferences:
        options = OPTIONS.get(key)
        if options is None:
            raise ValueError(f"Unknown preference: {key}")
        if value not in options:
            raise ValueError(f"Unsupported value for {key}: {value!r}")

        self.preferences = self.preferences.model_copy(update={key: value})
        self.saving = True
        try:
            await self._vault.update_metadata(self.preferences.model_dump())
        except VaultError as e:
            logger.error(f"Failed to save preferences: {e}")
        finally:
            self.saving = False
        return self.preferences


__all__ = [
    "LANGUAGES",
    "OPTIONS",
    "Preferences",
    "PreferencesManager",
    "THEMES",
    "TIMEZONES",
]
