"""
Session bootstrap and credential exchange.

The session state is decided once at startup from the navigation location
(OAuth callback) or the stored credential triple, and afterwards changes only
through the password exchange or an explicit logout.
"""

from .bootstrap import Location, bootstrap_session
from .handler import AuthError, SessionManager, exchange_credentials
from .models import Authenticated, Loading, NeedsPassword, SessionState, Unauthenticated

__all__ = [
    "AuthError",
    "Authenticated",
    "Loading",
    "Location",
    "NeedsPassword",
    "SessionManager",
    "SessionState",
    "Unauthenticated",
    "bootstrap_session",
    "exchange_credentials",
]
