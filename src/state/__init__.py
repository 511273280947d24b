"""
Local state: data models, key-value storage media and the credential store.

The credential store keeps the session triple (token, encryption password and
user identity) so a restarted client can resume without a new OAuth round trip.
"""

from .credential_store import CredentialStore
from .models import Credentials, Note, QuotaSnapshot, UserIdentity
from .storage import FileStorage, MemoryStorage

__all__ = [
    "CredentialStore",
    "Credentials",
    "FileStorage",
    "MemoryStorage",
    "Note",
    "QuotaSnapshot",
    "UserIdentity",
]
