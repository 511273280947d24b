from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional, Protocol

from cryptography.fernet import Fernet, InvalidToken


DEFAULT_STORAGE_DIR_ENV = "SECURENOTES_STORAGE_DIR"

logger = logging.getLogger(__name__)


def _default_storage_file() -> Path:
    # Prefer explicit env var, else project-local .cache folder
    base = os.environ.get(DEFAULT_STORAGE_DIR_ENV)
    if base:
        return Path(base) / "session.json"
    return Path(".cache") / "session.json"


def _to_fernet(key: str | bytes) -> Fernet:
    if isinstance(key, str):
        key = key.encode("utf-8")
    return Fernet(key)


class KeyValueStorage(Protocol):
    """Durable string key-value medium (the localStorage contract)."""

    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """Dict-backed storage; nothing survives the process."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)


class FileStorage:
    """
    Single JSON file holding `{key: value}` strings.

    - Loaded lazily on first access; rewritten in full on every mutation.
    - A missing, corrupt or undecryptable file reads as empty.
    - With `fernet_key`, the file body is Fernet-encrypted at rest. The key must be
      a urlsafe base64 32-byte key as returned by `Fernet.generate_key()`.
    """

    def __init__(
        self,
        path: Optional[os.PathLike[str] | str] = None,
        *,
        fernet_key: Optional[str | bytes] = None,
    ) -> None:
        self._path = Path(path) if path else _default_storage_file()
        self._fernet = _to_fernet(fernet_key) if fernet_key else None
        self._data: Dict[str, str] = {}
        self._loaded = False

    @property
    def path(self) -> Path:
        return self._path

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        self._loaded = True
        if not self._path.exists():
            return
        try:
            body = self._path.read_bytes()
            if self._fernet is not None:
                body = self._fernet.decrypt(body)
            raw = json.loads(body.decode("utf-8"))
        except (OSError, ValueError, InvalidToken) as exc:
            # Unreadable storage is equivalent to an empty one
            logger.warning(f"Ignoring unreadable storage file {self._path}: {exc!r}")
            return
        if isinstance(raw, dict):
            self._data = {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def _save(self) -> None:
        body = json.dumps(self._data, indent=2, sort_keys=True).encode("utf-8")
        if self._fernet is not None:
            body = self._fernet.encrypt(body)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_bytes(body)

    def get_item(self, key: str) -> Optional[str]:
        self._ensure_loaded()
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._ensure_loaded()
        self._data[key] = str(value)
        self._save()

    def remove_item(self, key: str) -> None:
        self._ensure_loaded()
        if self._data.pop(key, None) is not None:
            self._save()


__all__ = [
    "FileStorage",
    "KeyValueStorage",
    "MemoryStorage",
]
