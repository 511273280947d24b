from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from common.formatting import (
    format_bytes,
    format_quota,
    format_relative_time,
    quota_bar_percent,
    quota_percent,
)
from common.vault import VaultApiError
from notes.quota import QuotaTracker
from state.models import QuotaSnapshot


def test_quota_percent_half():
    snap = QuotaSnapshot(used_bytes=512, quota_bytes=1024, unlimited=False)
    assert quota_percent(snap) == 50


def test_quota_percent_unlimited_is_not_computed():
    snap = QuotaSnapshot(used_bytes=512, quota_bytes=None, unlimited=True)
    assert quota_percent(snap) is None
    assert quota_bar_percent(snap) is None
    assert format_quota(snap) == "512 B / Unlimited"


def test_quota_percent_rounds_half_up_and_bar_clamps():
    assert quota_percent(QuotaSnapshot(used_bytes=1, quota_bytes=8)) == 13  # 12.5 -> 13
    over = QuotaSnapshot(used_bytes=3000, quota_bytes=1024)
    assert quota_percent(over) == 293
    assert quota_bar_percent(over) == 100


def test_quota_sentinel_from_payload():
    snap = QuotaSnapshot.model_validate({"usedBytes": 10, "quotaBytes": "unlimited"})
    assert snap.unlimited is True
    assert snap.quota_bytes is None


@pytest.mark.parametrize(
    "n, expected",
    [
        (0, "0 B"),
        (512, "512 B"),
        (1024, "1 KB"),
        (1536, "1.5 KB"),
        (5 * 1024 * 1024, "5 MB"),
        (3 * 1024**3, "3 GB"),
    ],
)
def test_format_bytes(n, expected):
    assert format_bytes(n) == expected


def test_format_relative_time():
    now = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)
    assert format_relative_time(now - timedelta(seconds=30), now=now) == "Just now"
    assert format_relative_time(now - timedelta(minutes=5), now=now) == "5m ago"
    assert format_relative_time(now - timedelta(hours=3), now=now) == "3h ago"
    assert format_relative_time(now - timedelta(days=2), now=now) == "2d ago"
    assert format_relative_time(now - timedelta(days=30), now=now) == "2025-02-08"


@pytest.mark.asyncio
async def test_tracker_replaces_snapshot_each_refresh(fake_vault):
    tracker = QuotaTracker(fake_vault)
    assert tracker.percent is None
    assert tracker.label is None

    fake_vault.quota = QuotaSnapshot(used_bytes=100, quota_bytes=1000)
    await tracker.refresh()
    assert tracker.percent == 10

    fake_vault.quota = QuotaSnapshot(used_bytes=900, quota_bytes=1000)
    await tracker.refresh()
    assert tracker.percent == 90
    assert fake_vault.quota_calls == 2


@pytest.mark.asyncio
async def test_tracker_keeps_last_snapshot_on_failure(fake_vault):
    tracker = QuotaTracker(fake_vault)
    await tracker.refresh()
    before = tracker.snapshot

    fake_vault.fail_quota = VaultApiError("down", status_code=503)
    assert await tracker.refresh() == before


@pytest.mark.asyncio
async def test_tracker_ignores_out_of_order_responses():
    class _SlowThenFast:
        def __init__(self) -> None:
            self.calls = 0

        async def get_quota(self):
            self.calls += 1
            if self.calls == 1:
                await asyncio.sleep(0.03)
                return QuotaSnapshot(used_bytes=1, quota_bytes=100)
            return QuotaSnapshot(used_bytes=2, quota_bytes=100)

    tracker = QuotaTracker(_SlowThenFast())
    await asyncio.gather(tracker.refresh(), tracker.refresh())

    assert tracker.snapshot.used_bytes == 2
