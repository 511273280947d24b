from __future__ import annotations

import logging
from typing import Optional

from common.vault import VaultClient, VaultError
from state.credential_store import CredentialStore
from state.models import Credentials

from .bootstrap import Location, bootstrap_session
from .models import Authenticated, Loading, NeedsPassword, SessionState, Unauthenticated


logger = logging.getLogger(__name__)


class AuthError(RuntimeError):
    """Code exchange failed: bad or expired code, wrong password, or network error."""


async def exchange_credentials(
    auth_code: str,
    password: str,
    *,
    vault: VaultClient,
    credentials: CredentialStore,
) -> Authenticated:
    """
    Mint a session from an authorization code and the encryption password.

    On success the token issued by the vault, the password and the user identity
    are persisted together. Any vault failure is raised as `AuthError`; nothing
    is persisted in that case.
    """
    try:
        user = await vault.exchange_code(auth_code, password)
    except VaultError as e:
        raise AuthError(str(e) or "Authentication failed") from e

    token = vault.token
    if not token:
        raise AuthError("Vault did not issue a session token")
    credentials.save(Credentials(token=token, password=password, user=user))
    return Authenticated(user=user)


class SessionManager:
    """
    Owns the session state for one process.

    - `start()` samples the location once; later calls return the current state.
    - `submit_password()` runs the code exchange. On failure the state stays
      NeedsPassword with the same code so the password can be retried, and
      `error` carries the user-facing message.
    - `logout()` clears the vault session and the stored credentials.
    """

    def __init__(self, *, vault: VaultClient, credentials: CredentialStore) -> None:
        self._vault = vault
        self._credentials = credentials
        self._state: SessionState = Loading()
        self._started = False
        self.error: Optional[str] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def user(self):
        return self._state.user if isinstance(self._state, Authenticated) else None

    def start(self, location: Location) -> SessionState:
        if self._started:
            return self._state
        self._started = True
        self._state = bootstrap_session(location, vault=self._vault, credentials=self._credentials)
        return self._state

    async def submit_password(self, password: str) -> SessionState:
        state = self._state
        if not isinstance(state, NeedsPassword):
            raise RuntimeError("No authorization code is pending")
        if not password:
            raise ValueError("password is required")

        try:
            self._state = await exchange_credentials(
                state.auth_code,
                password,
                vault=self._vault,
                credentials=self._credentials,
            )
        except AuthError as e:
            logger.warning(f"Authentication failed: {e}")
            self.error = f"Authentication failed: {e}"
            return self._state

        self.error = None
        return self._state

    def login_url(self) -> str:
        return self._vault.get_auth_url()

    def logout(self) -> None:
        self._vault.logout()
        self._credentials.clear()
        self._state = Unauthenticated()
        self.error = None


__all__ = [
    "AuthError",
    "SessionManager",
    "exchange_credentials",
]
