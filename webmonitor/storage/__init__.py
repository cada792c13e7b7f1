"""Persistence backends."""

from .base import MonitorStore
from .memory import MemoryStore
from .sqlite import SQLiteStore

__all__ = ["MonitorStore", "MemoryStore", "SQLiteStore"]
