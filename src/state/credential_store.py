from __future__ import annotations

import json
import logging
from typing import Optional

from pydantic import ValidationError

from .models import Credentials, UserIdentity
from .storage import KeyValueStorage


TOKEN_KEY = "syncvault_token"
PASSWORD_KEY = "syncvault_password"
USER_KEY = "syncvault_user"

logger = logging.getLogger(__name__)


class CredentialStore:
    """
    Persists the `{token, password, user}` session triple in a key-value medium.

    All three keys are written and cleared together. `load()` returns None unless
    every key is present and non-empty and the user blob parses; a partial set is
    the same as no session. Token and password are passed through untouched.
    """

    def __init__(self, storage: KeyValueStorage) -> None:
        self._storage = storage

    def save(self, credentials: Credentials) -> None:
        self._storage.set_item(TOKEN_KEY, credentials.token)
        self._storage.set_item(PASSWORD_KEY, credentials.password)
        self._storage.set_item(
            USER_KEY, json.dumps(credentials.user.model_dump(), separators=(",", ":"))
        )

    def load(self) -> Optional[Credentials]:
        token = self._storage.get_item(TOKEN_KEY)
        password = self._storage.get_item(PASSWORD_KEY)
        user_raw = self._storage.get_item(USER_KEY)
        if not token or not password or not user_raw:
            return None
        try:
            user = UserIdentity.model_validate(json.loads(user_raw))
        except (ValueError, ValidationError) as exc:
            logger.warning(f"Stored user identity is unreadable; ignoring session: {exc!r}")
            return None
        return Credentials(token=token, password=password, user=user)

    def clear(self) -> None:
        for key in (TOKEN_KEY, PASSWORD_KEY, USER_KEY):
            self._storage.remove_item(key)


__all__ = [
    "CredentialStore",
    "PASSWORD_KEY",
    "TOKEN_KEY",
    "USER_KEY",
]
