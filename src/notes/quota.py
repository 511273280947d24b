from __future__ import annotations

import logging
from typing import Optional

from common.formatting import format_quota, quota_bar_percent, quota_percent
from common.vault import VaultClient, VaultError
from state.models import QuotaSnapshot


logger = logging.getLogger(__name__)


class QuotaTracker:
    """
    Holds the last quota snapshot fetched from the vault.

    Every `refresh()` is a fresh round trip; usage is never derived from local
    write sizes. Fetch failures are logged and keep the previous snapshot.
    When refreshes overlap, a response never replaces one from a later request.
    """

    def __init__(self, vault: VaultClient) -> None:
        self._vault = vault
        self._snapshot: Optional[QuotaSnapshot] = None
        self._issued = 0
        self._applied = 0

    @property
    def snapshot(self) -> Optional[QuotaSnapshot]:
        return self._snapshot

    async def refresh(self) -> Optional[QuotaSnapshot]:
        self._issued += 1
        seq = self._issued
        try:
            snapshot = await self._vault.get_quota()
        except VaultError as e:
            logger.error(f"Failed to load quota: {e}")
            return self._snapshot
        if seq > self._applied:
            self._applied = seq
            self._snapshot = snapshot
        return self._snapshot

    @property
    def percent(self) -> Optional[int]:
        """Rounded usage percent; None when unknown or unlimited."""
        if self._snapshot is None:
            return None
        return quota_percent(self._snapshot)

    @property
    def bar_percent(self) -> Optional[int]:
        if self._snapshot is None:
            return None
        return quota_bar_percent(self._snapshot)

    @property
    def label(self) -> Optional[str]:
        if self._snapshot is None:
            return None
        return format_quota(self._snapshot)


__all__ = ["QuotaTracker"]
