from __future__ import annotations

import asyncio
import base64
import json
from typing import Any, Dict, List, Mapping, Optional

import httpx
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from pydantic import ValidationError

from state.models import QuotaSnapshot, RemoteEntry, UserIdentity


DEFAULT_SERVER_URL = "https://api.syncvault.dev"
DEFAULT_KDF_ITERATIONS = 480_000
KDF_SALT = b"syncvault.notes.v1"

# Reserved object used to tell a wrong encryption password from a right one
KEY_CHECK_PATH = ".keycheck"
_KEY_CHECK_VALUE = {"check": "syncvault"}


class VaultError(RuntimeError):
    """Base error for the vault client."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class VaultApiError(VaultError):
    """Non-2xx response or a payload of unexpected shape."""


class VaultAuthError(VaultError):
    """Rejected credentials, bad authorization code, or no session configured."""


class VaultNotFoundError(VaultError):
    """The requested path does not exist."""


class VaultQuotaExceededError(VaultError):
    """A write was rejected because the storage limit is reached (HTTP 413)."""


class VaultDecryptionError(VaultError):
    """Ciphertext could not be decrypted with the configured password."""


def derive_fernet(password: str, *, iterations: int = DEFAULT_KDF_ITERATIONS) -> Fernet:
    """Derive the Fernet cipher for an encryption password (PBKDF2-HMAC-SHA256)."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=KDF_SALT,
        iterations=iterations,
    )
    key = base64.urlsafe_b64encode(kdf.derive(password.encode("utf-8")))
    return Fernet(key)


class VaultClient:
    """
    Async client for the SyncVault encrypted key-value service.

    Notes
    - Object bodies are JSON, encrypted client-side with a key derived from the
      user's encryption password. The server stores and returns ciphertext only.
    - Session lifecycle is explicit: `exchange_code()` or `set_auth()` configure
      the client, `logout()` clears it. Calls that need a session raise
      `VaultAuthError` when none is configured.
    - No retries: every failure surfaces to the caller as a `VaultError`.
    """

    def __init__(
        self,
        app_token: str,
        *,
        redirect_uri: str,
        server_url: str = DEFAULT_SERVER_URL,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
        kdf_iterations: int = DEFAULT_KDF_ITERATIONS,
    ) -> None:
        if not app_token:
            raise ValueError("app_token is required")
        if not redirect_uri:
            raise ValueError("redirect_uri is required")
        self._app_token = app_token
        self._redirect_uri = redirect_uri
        self._server_url = server_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._kdf_iterations = kdf_iterations
        self._token: Optional[str] = None
        self._password: Optional[str] = None
        self._fernet: Optional[Fernet] = None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "VaultClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    # --------------- Session lifecycle ---------------
    @property
    def token(self) -> Optional[str]:
        return self._token

    @property
    def is_authenticated(self) -> bool:
        return bool(self._token and self._password)

    def set_auth(self, token: str, password: str) -> None:
        """Configure subsequent calls with a session token and encryption password."""
        if not token or not password:
            raise ValueError("token and password are required")
        self._token = token
        self._password = password
        self._fernet = None  # derived lazily, off the event loop, on first encrypt/decrypt

    def logout(self) -> None:
        self._token = None
        self._password = None
        self._fernet = None

    def get_auth_url(self, state: Optional[str] = None) -> str:
        """URL to send the user to for the OAuth authorization step."""
        params = {
            "client_id": self._app_token,
            "redirect_uri": self._redirect_uri,
            "response_type": "code",
        }
        if state:
            params["state"] = state
        return str(httpx.URL(f"{self._server_url}/oauth/authorize", params=params))

    async def exchange_code(self, code: str, password: str) -> UserIdentity:
        """
        Trade an authorization code for a session token and set up encryption.

        The password never goes over the wire; it only keys the local cipher.
        A wrong password is detected against the account's key-check object and
        reported as `VaultAuthError`, leaving the client unauthenticated.
        """
        if not code:
            raise ValueError("code is required")
        if not password:
            raise ValueError("password is required")

        data = await self._request(
            "POST",
            "/oauth/token",
            json_body={
                "grant_type": "authorization_code",
                "code": code,
                "client_id": self._app_token,
                "redirect_uri": self._redirect_uri,
            },
            auth=False,
        )
        if not isinstance(data, dict):
            raise VaultApiError("Malformed token response from vault")
        token = data.get("access_token")
        if not isinstance(token, str) or not token:
            raise VaultApiError("Token response missing access_token")
        try:
            user = UserIdentity.model_validate(data.get("user"))
        except ValidationError as ve:
            raise VaultApiError(f"Token response has invalid user: {ve}") from ve

        self.set_auth(token, password)
        try:
            await self._verify_password()
        except VaultError:
            self.logout()
            raise
        return user

    # --------------- Objects ---------------
    async def list(self) -> List[RemoteEntry]:
        data = await self._request("GET", "/api/data/list")
        files = data.get("files") if isinstance(data, dict) else data
        if not isinstance(files, list):
            raise VaultApiError("Malformed listing from vault")
        try:
            return [RemoteEntry.model_validate(item) for item in files]
        except ValidationError as ve:
            raise VaultApiError(f"Failed to parse listing: {ve}") from ve

    async def get(self, path: str) -> Dict[str, Any]:
        data = await self._request("GET", "/api/data", params={"path": path})
        if not isinstance(data, dict) or not isinstance(data.get("data"), str):
            raise VaultApiError(f"Malformed object payload for {path}")
        return self._decrypt(await self._cipher(), data["data"], path=path)

    async def put(self, path: str, data: Mapping[str, Any]) -> None:
        ciphertext = self._encrypt(await self._cipher(), data)
        await self._request(
            "POST",
            "/api/data",
            json_body={"path": path, "data": ciphertext},
        )

    async def delete(self, path: str) -> None:
        await self._request("DELETE", "/api/data", params={"path": path})

    # --------------- Metadata & quota ---------------
    async def get_metadata(self) -> Optional[Dict[str, Any]]:
        data = await self._request("GET", "/api/metadata")
        meta = data.get("metadata") if isinstance(data, dict) else None
        return meta if isinstance(meta, dict) else None

    async def update_metadata(self, metadata: Mapping[str, Any]) -> None:
        await self._request("PUT", "/api/metadata", json_body={"metadata": dict(metadata)})

    async def get_quota(self) -> QuotaSnapshot:
        data = await self._request("GET", "/api/quota")
        try:
            return QuotaSnapshot.model_validate(data)
        except ValidationError as ve:
            raise VaultApiError(f"Failed to parse quota: {ve}") from ve

    # --------------- Internal ---------------
    async def _cipher(self) -> Fernet:
        password = self._password
        if not password:
            raise VaultAuthError("Not authenticated")
        if self._fernet is not None:
            return self._fernet
        # Key stretching takes a noticeable fraction of a second; keep it off the loop
        fernet = await asyncio.to_thread(derive_fernet, password, iterations=self._kdf_iterations)
        if self._password != password:
            raise VaultAuthError("Session changed while deriving the encryption key")
        self._fernet = fernet
        return fernet

    @staticmethod
    def _encrypt(cipher: Fernet, data: Mapping[str, Any]) -> str:
        plaintext = json.dumps(dict(data), separators=(",", ":"), sort_keys=True).encode("utf-8")
        return cipher.encrypt(plaintext).decode("ascii")

    @staticmethod
    def _decrypt(cipher: Fernet, token: str, *, path: str) -> Dict[str, Any]:
        try:
            plaintext = cipher.decrypt(token.encode("ascii"))
        except (InvalidToken, UnicodeEncodeError) as ex:
            raise VaultDecryptionError(f"Failed to decrypt {path}: wrong password or corrupt data") from ex
        try:
            obj = json.loads(plaintext.decode("utf-8"))
        except ValueError as ex:
            raise VaultApiError(f"Decrypted {path} is not valid JSON") from ex
        if not isinstance(obj, dict):
            raise VaultApiError(f"Decrypted {path} is not a JSON object")
        return obj

    async def _verify_password(self) -> None:
        try:
            check = await self.get(KEY_CHECK_PATH)
        except VaultNotFoundError:
            # First session for this account: the password becomes the reference
            await self.put(KEY_CHECK_PATH, _KEY_CHECK_VALUE)
            return
        except VaultDecryptionError as ex:
            raise VaultAuthError("Invalid encryption password") from ex
        if check != _KEY_CHECK_VALUE:
            raise VaultAuthError("Invalid encryption password")

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json_body: Optional[Dict[str, Any]] = None,
        auth: bool = True,
    ) -> Any:
        headers = {"X-App-Token": self._app_token}
        if auth:
            if not self._token:
                raise VaultAuthError("Not authenticated")
            headers["Authorization"] = f"Bearer {self._token}"

        try:
            resp = await self._client.request(
                method,
                f"{self._server_url}{path}",
                params=params,
                json=json_body,
                headers=headers,
            )
        except httpx.RequestError as exc:
            raise VaultError(f"Vault request failed: {exc}") from exc

        if 200 <= resp.status_code < 300:
            if resp.status_code == 204 or not resp.content:
                return None
            try:
                return resp.json()
            except ValueError as exc:
                raise VaultApiError("Failed to parse JSON from vault", status_code=resp.status_code) from exc

        message = self._error_message(resp)
        if resp.status_code in (401, 403):
            raise VaultAuthError(message, status_code=resp.status_code)
        if resp.status_code == 404:
            raise VaultNotFoundError(message, status_code=resp.status_code)
        if resp.status_code == 413:
            raise VaultQuotaExceededError(message, status_code=resp.status_code)
        raise VaultApiError(message, status_code=resp.status_code)

    @staticmethod
    def _error_message(resp: httpx.Response) -> str:
        # Prefer the server's own message when it sends one
        try:
            body = resp.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            for key in ("error", "message"):
                val = body.get(key)
                if isinstance(val, str) and val:
                    return val
        return f"HTTP {resp.status_code} from vault: {resp.text[:200]}"


__all__ = [
    "DEFAULT_SERVER_URL",
    "KEY_CHECK_PATH",
    "VaultApiError",
    "VaultAuthError",
    "VaultClient",
    "VaultDecryptionError",
    "VaultError",
    "VaultNotFoundError",
    "VaultQuotaExceededError",
    "derive_fernet",
]
