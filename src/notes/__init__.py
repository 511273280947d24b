"""
Notes: cache, debounced sync, quota tracking, preferences and the edit workspace.
"""

from .cache import NoteCache, SyncStatus
from .debounce import Debouncer
from .preferences import Preferences, PreferencesManager
from .quota import QuotaTracker
from .workspace import NotesWorkspace

__all__ = [
    "Debouncer",
    "NoteCache",
    "NotesWorkspace",
    "Preferences",
    "PreferencesManager",
    "QuotaTracker",
    "SyncStatus",
]
