from __future__ import annotations

import pytest

from common.vault import VaultApiError
from notes.preferences import Preferences, PreferencesManager


@pytest.mark.asyncio
async def test_load_merges_known_keys_over_defaults(fake_vault):
    fake_vault.metadata = {"theme": "dark", "favourite": "blue", "language": 3}
    manager = PreferencesManager(fake_vault)

    prefs = await manager.load()

    assert prefs == Preferences(theme="dark", timezone="UTC", language="en")


@pytest.mark.asyncio
async def test_load_with_no_metadata_keeps_defaults(fake_vault):
    manager = PreferencesManager(fake_vault)
    assert await manager.load() == Preferences()


@pytest.mark.asyncio
async def test_load_failure_is_contained(fake_vault):
    fake_vault.fail_metadata = VaultApiError("down", status_code=503)
    manager = PreferencesManager(fake_vault, initial=Preferences(theme="auto"))

    assert (await manager.load()).theme == "auto"
    assert manager.loading is False


@pytest.mark.asyncio
async def test_update_saves_whole_mapping(fake_vault):
    manager = PreferencesManager(fake_vault)
    await manager.update("timezone", "Asia/Tokyo")

    assert fake_vault.metadata_updates == [
        {"theme": "light", "timezone": "Asia/Tokyo", "language": "en"}
    ]
    assert manager.saving is False


@pytest.mark.asyncio
async def test_update_keeps_local_value_when_save_fails(fake_vault):
    manager = PreferencesManager(fake_vault)
    fake_vault.fail_metadata = VaultApiError("down", status_code=503)

    prefs = await manager.update("language", "fr")

    assert prefs.language == "fr"
    assert manager.saving is False


@pytest.mark.asyncio
async def test_update_rejects_unknown_key_and_value(fake_vault):
    manager = PreferencesManager(fake_vault)
    with pytest.raises(ValueError):
        await manager.update("font", "mono")
    with pytest.raises(ValueError):
        await manager.update("theme", "neon")
    assert fake_vault.metadata_updates == []
