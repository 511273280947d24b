from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from state.models import UserIdentity


@dataclass(frozen=True)
class Loading:
    """Startup has not been evaluated yet."""


@dataclass(frozen=True)
class NeedsPassword:
    """An authorization code arrived; waiting for the encryption password."""

    auth_code: str


@dataclass(frozen=True)
class Unauthenticated:
    """No session. `error` holds the OAuth error indicator when one was received."""

    error: Optional[str] = None


@dataclass(frozen=True)
class Authenticated:
    user: UserIdentity


SessionState = Union[Loading, NeedsPassword, Unauthenticated, Authenticated]


__all__ = [
    "Authenticated",
    "Loading",
    "NeedsPassword",
    "SessionState",
    "Unauthenticated",
]
