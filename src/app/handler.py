from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Optional

import boto3
from botocore.exceptions import ClientError

from common.vault import DEFAULT_SERVER_URL, VaultClient
from notes.debounce import DEFAULT_DELAY_SECONDS
from notes.workspace import NotesWorkspace
from session.bootstrap import Location
from session.handler import SessionManager
from session.models import Authenticated, SessionState
from state.credential_store import CredentialStore
from state.storage import DEFAULT_STORAGE_DIR_ENV, FileStorage, KeyValueStorage


ENV_APP_TOKEN = "SECURENOTES_APP_TOKEN"
ENV_REDIRECT_URI = "SECURENOTES_REDIRECT_URI"
ENV_SERVER_URL = "SECURENOTES_SERVER_URL"
ENV_STORAGE_KEY = "SECURENOTES_STORAGE_KEY"
ENV_DEBOUNCE_SECONDS = "SECURENOTES_DEBOUNCE_SECONDS"
ENV_PARAM_PREFIX = "PARAM_PREFIX"

# Backward-compatible fallbacks (names used by the web build)
FALLBACK_ENV_APP_TOKEN = "VITE_APP_TOKEN"
FALLBACK_ENV_REDIRECT_URI = "VITE_REDIRECT_URI"
FALLBACK_ENV_SERVER_URL = "VITE_SERVER_URL"

logger = logging.getLogger(__name__)


def _getenv(name: str, default: Optional[str] = None) -> Optional[str]:
    val = os.environ.get(name)
    return val if val not in (None, "") else default


def _require(v: Optional[str], what: str) -> str:
    if not v:
        raise RuntimeError(f"Missing required configuration: {what}")
    return v


def _load_ssm_params(prefix: str, names: Iterable[str]) -> Dict[str, Optional[str]]:
    ssm = boto3.client("ssm")
    out: Dict[str, Optional[str]] = {k: None for k in names}
    for name in names:
        full = f"{prefix}{name}"
        try:
            resp = ssm.get_parameter(Name=full, WithDecryption=True)
        except ClientError as e:
            # Leave as None if parameter missing or access denied
            code = e.response.get("Error", {}).get("Code")
            if code in ("ParameterNotFound", "AccessDeniedException"):
                out[name] = None
                continue
            raise
        val = resp.get("Parameter", {}).get("Value")
        out[name] = val if isinstance(val, str) and val != "" else None
    return out


@dataclass(frozen=True)
class AppConfig:
    app_token: str
    redirect_uri: str
    server_url: str = DEFAULT_SERVER_URL
    storage_dir: Optional[str] = None
    storage_key: Optional[str] = None
    debounce_seconds: float = DEFAULT_DELAY_SECONDS


def load_config() -> AppConfig:
    """
    Resolve configuration from the environment.

    - App token and redirect URI come from SECURENOTES_* variables, then the
      VITE_* fallbacks, then SSM parameters `app_token` / `redirect_uri` under
      PARAM_PREFIX when that is set.
    - Missing required values raise RuntimeError.
    """
    app_token = _getenv(ENV_APP_TOKEN) or _getenv(FALLBACK_ENV_APP_TOKEN)
    redirect_uri = _getenv(ENV_REDIRECT_URI) or _getenv(FALLBACK_ENV_REDIRECT_URI)
    server_url = _getenv(ENV_SERVER_URL) or _getenv(FALLBACK_ENV_SERVER_URL, DEFAULT_SERVER_URL)

    prefix = _getenv(ENV_PARAM_PREFIX)
    if prefix and (not app_token or not redirect_uri):
        logger.info(f"Reading missing configuration from SSM under {prefix}")
        params = _load_ssm_params(prefix, ["app_token", "redirect_uri"])
        app_token = app_token or params.get("app_token")
        redirect_uri = redirect_uri or params.get("redirect_uri")

    raw_delay = _getenv(ENV_DEBOUNCE_SECONDS)
    try:
        debounce = float(raw_delay) if raw_delay is not None else DEFAULT_DELAY_SECONDS
    except ValueError as e:
        raise RuntimeError(f"Invalid {ENV_DEBOUNCE_SECONDS}: {raw_delay!r}") from e

    return AppConfig(
        app_token=_require(app_token, ENV_APP_TOKEN),
        redirect_uri=_require(redirect_uri, ENV_REDIRECT_URI),
        server_url=server_url or DEFAULT_SERVER_URL,
        storage_dir=_getenv(DEFAULT_STORAGE_DIR_ENV),
        storage_key=_getenv(ENV_STORAGE_KEY),
        debounce_seconds=debounce,
    )


class SecureNotesApp:
    """
    Top-level wiring: vault client, credential store, session and workspace.

    `start(url)` evaluates the session once. When the session is authenticated,
    `open_workspace()` builds and loads the notes workspace.
    """

    def __init__(
        self,
        config: AppConfig,
        *,
        vault: Optional[VaultClient] = None,
        storage: Optional[KeyValueStorage] = None,
    ) -> None:
        self.config = config
        self.vault = vault or VaultClient(
            config.app_token,
            redirect_uri=config.redirect_uri,
            server_url=config.server_url,
        )
        if storage is None:
            path = Path(config.storage_dir) / "session.json" if config.storage_dir else None
            storage = FileStorage(path, fernet_key=config.storage_key)
        self.credentials = CredentialStore(storage)
        self.session = SessionManager(vault=self.vault, credentials=self.credentials)
        self.workspace: Optional[NotesWorkspace] = None

    @classmethod
    def from_env(cls) -> "SecureNotesApp":
        return cls(load_config())

    def start(self, url: str) -> SessionState:
        return self.session.start(Location(url))

    async def submit_password(self, password: str) -> SessionState:
        return await self.session.submit_password(password)

    def login_url(self) -> str:
        return self.session.login_url()

    async def open_workspace(self) -> NotesWorkspace:
        if not isinstance(self.session.state, Authenticated):
            raise RuntimeError("Not authenticated")
        if self.workspace is None:
            self.workspace = NotesWorkspace(self.vault, debounce_seconds=self.config.debounce_seconds)
            await self.workspace.load()
        return self.workspace

    async def logout(self) -> None:
        await self._close_workspace()
        self.session.logout()

    async def aclose(self) -> None:
        await self._close_workspace()
        await self.vault.aclose()

    async def _close_workspace(self) -> None:
        if self.workspace is not None:
            await self.workspace.aclose()
            self.workspace = None


__all__ = [
    "AppConfig",
    "SecureNotesApp",
    "load_config",
]
