from __future__ import annotations

import math
from datetime import datetime, timezone
from typing import Optional

from state.models import QuotaSnapshot


_UNITS = ("B", "KB", "MB", "GB")


def format_bytes(num_bytes: int) -> str:
    """Human-readable size with 1024-based units: 0 B, 512 B, 1.5 KB, 2 MB."""
    if num_bytes <= 0:
        return "0 B"
    i = 0
    while num_bytes >= 1024 ** (i + 1) and i < len(_UNITS) - 1:
        i += 1
    value = round(num_bytes / (1024**i), 1)
    return f"{value:g} {_UNITS[i]}"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def quota_percent(snapshot: QuotaSnapshot) -> Optional[int]:
    """Rounded usage percentage, or None for unlimited plans.

    Not clamped; see `quota_bar_percent` for the display value.
    """
    if snapshot.unlimited or snapshot.quota_bytes is None:
        return None
    if snapshot.quota_bytes == 0:
        return 100 if snapshot.used_bytes > 0 else 0
    return round_half_up(snapshot.used_bytes / snapshot.quota_bytes * 100)


def quota_bar_percent(snapshot: QuotaSnapshot) -> Optional[int]:
    pct = quota_percent(snapshot)
    return None if pct is None else min(pct, 100)


def format_quota(snapshot: QuotaSnapshot) -> str:
    used = format_bytes(snapshot.used_bytes)
    if snapshot.unlimited or snapshot.quota_bytes is None:
        return f"{used} / Unlimited"
    return f"{used} / {format_bytes(snapshot.quota_bytes)}"


def format_relative_time(ts: datetime, *, now: Optional[datetime] = None) -> str:
    """Short age label: Just now, 5m ago, 3h ago, 2d ago, else the date."""
    now = now or datetime.now(timezone.utc)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    diff = (now - ts).total_seconds()
    mins = int(diff // 60)
    hours = int(diff // 3600)
    days = int(diff // 86400)
    if mins < 1:
        return "Just now"
    if mins < 60:
        return f"{mins}m ago"
    if hours < 24:
        return f"{hours}h ago"
    if days < 7:
        return f"{days}d ago"
    return ts.date().isoformat()


__all__ = [
    "format_bytes",
    "format_quota",
    "format_relative_time",
    "quota_bar_percent",
    "quota_percent",
    "round_half_up",
]
