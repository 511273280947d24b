import asyncio
import os
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple

import pytest


def pytest_configure():
    # Ensure `src/` is importable as top-level for `common.*` imports
    root = os.path.abspath(os.path.dirname(os.path.dirname(__file__)))
    src_path = os.path.join(root, "src")
    if src_path not in sys.path:
        sys.path.insert(0, src_path)


class FakeVault:
    """In-memory stand-in for VaultClient with switchable failures."""

    def __init__(self) -> None:
        from state.models import QuotaSnapshot

        self.objects: Dict[str, Dict[str, Any]] = {}
        self.updated: Dict[str, datetime] = {}
        self.puts: List[Tuple[str, Dict[str, Any]]] = []
        self.deletes: List[str] = []
        self.metadata: Optional[Dict[str, Any]] = None
        self.metadata_updates: List[Dict[str, Any]] = []
        self.quota = QuotaSnapshot(used_bytes=0, quota_bytes=1024)
        self.quota_calls = 0

        self.fail_list: Optional[Exception] = None
        self.fail_get: Set[str] = set()
        self.fail_put: Optional[Exception] = None
        self.fail_delete: Optional[Exception] = None
        self.fail_quota: Optional[Exception] = None
        self.fail_metadata: Optional[Exception] = None
        self.put_delay = 0.0

        self.token: Optional[str] = None
        self.password: Optional[str] = None
        self.expected_password = "correct horse"
        self.exchanged: List[Tuple[str, str]] = []

    def seed(self, note_id: str, title: str, content: str, updated_at: datetime) -> str:
        path = f"notes/{note_id}.json"
        self.objects[path] = {"title": title, "content": content}
        self.updated[path] = updated_at
        return path

    # -- session --
    def set_auth(self, token: str, password: str) -> None:
        self.token = token
        self.password = password

    def logout(self) -> None:
        self.token = None
        self.password = None

    async def aclose(self) -> None:
        pass

    def get_auth_url(self, state=None) -> str:  # noqa: ARG002
        return "https://vault.test/oauth/authorize?client_id=app"

    async def exchange_code(self, code: str, password: str):
        from common.vault import VaultAuthError
        from state.models import UserIdentity

        self.exchanged.append((code, password))
        if password != self.expected_password:
            raise VaultAuthError("Invalid encryption password")
        self.set_auth(f"tok-{code}", password)
        return UserIdentity(username="alice")

    # -- objects --
    async def list(self):
        from state.models import RemoteEntry

        if self.fail_list:
            raise self.fail_list
        return [
            RemoteEntry(path=p, updated_at=self.updated.get(p, datetime.now(timezone.utc)))
            for p in self.objects
        ]

    async def get(self, path: str) -> Dict[str, Any]:
        from common.vault import VaultApiError, VaultNotFoundError

        if path in self.fail_get:
            raise VaultApiError(f"boom {path}", status_code=500)
        if path not in self.objects:
            raise VaultNotFoundError("not found", status_code=404)
        return dict(self.objects[path])

    async def put(self, path: str, data) -> None:
        if self.put_delay:
            await asyncio.sleep(self.put_delay)
        if self.fail_put:
            raise self.fail_put
        self.objects[path] = dict(data)
        self.updated[path] = datetime.now(timezone.utc)
        self.puts.append((path, dict(data)))

    async def delete(self, path: str) -> None:
        from common.vault import VaultNotFoundError

        if self.fail_delete:
            raise self.fail_delete
        self.deletes.append(path)
        if path not in self.objects:
            raise VaultNotFoundError("not found", status_code=404)
        del self.objects[path]

    # -- metadata & quota --
    async def get_metadata(self):
        if self.fail_metadata:
            raise self.fail_metadata
        return dict(self.metadata) if self.metadata is not None else None

    async def update_metadata(self, metadata) -> None:
        if self.fail_metadata:
            raise self.fail_metadata
        self.metadata_updates.append(dict(metadata))
        self.metadata = dict(metadata)

    async def get_quota(self):
        self.quota_calls += 1
        if self.fail_quota:
            raise self.fail_quota
        return self.quota


@pytest.fixture
def fake_vault() -> FakeVault:
    return FakeVault()
