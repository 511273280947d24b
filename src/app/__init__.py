"""
Application wiring and configuration for the SecureNotes client.
"""

from .handler import AppConfig, SecureNotesApp, load_config

__all__ = ["AppConfig", "SecureNotesApp", "load_config"]
