"""
Common utilities for the SecureNotes client.

Modules:
- vault: async SyncVault client (client-side encryption, typed errors)
- formatting: display helpers for sizes, quota and note ages
"""

__all__ = [
    "formatting",
    "vault",
]
