"""
Store backends for the profile directory.

Supports in-memory and SQLite storage.
"""

from .memory import MemoryBackend
from .sqlite_backend import SqliteBackend

__all__ = ["MemoryBackend", "SqliteBackend"]
