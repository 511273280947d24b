from __future__ import annotations

import logging
from typing import Optional

import httpx

from common.vault import VaultClient
from state.credential_store import CredentialStore

from .models import Authenticated, NeedsPassword, SessionState, Unauthenticated


logger = logging.getLogger(__name__)


class Location:
    """
    The current navigation location, read once at startup.

    Mutable only through `strip_query()`, the equivalent of replacing the
    history entry with the bare path so a reload cannot replay the callback.
    """

    def __init__(self, url: str | httpx.URL) -> None:
        self._url = httpx.URL(url)

    @property
    def url(self) -> httpx.URL:
        return self._url

    def param(self, name: str) -> Optional[str]:
        return self._url.params.get(name)

    def strip_query(self) -> None:
        self._url = self._url.copy_with(query=None, fragment=None)

    def __str__(self) -> str:
        return str(self._url)


def bootstrap_session(
    location: Location,
    *,
    vault: VaultClient,
    credentials: CredentialStore,
) -> SessionState:
    """
    Decide the initial session state from the location and stored credentials.

    Order of precedence:
    1. `error` query param: Unauthenticated (indicator stripped from the location).
    2. `code` query param: NeedsPassword(code) (code stripped; single use).
    3. stored credential triple: vault configured, Authenticated with the cached
       identity. No network call is made.
    4. otherwise Unauthenticated.

    Stripping happens before this function returns, i.e. before any async work.
    """
    error = location.param("error")
    if error:
        logger.error(f"OAuth error: {error}")
        location.strip_query()
        return Unauthenticated(error=error)

    code = location.param("code")
    if code:
        location.strip_query()
        return NeedsPassword(auth_code=code)

    stored = credentials.load()
    if stored is not None:
        vault.set_auth(stored.token, stored.password)
        return Authenticated(user=stored.user)

    return Unauthenticated()


__all__ = [
    "Location",
    "bootstrap_session",
]
