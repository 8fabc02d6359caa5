# Persistence Layer - project-memory SQLite store read by the dashboard

from .db import DatabaseManager
from .memory_store import MemoryStats, MemoryStore

__all__ = [
    "DatabaseManager",
    "MemoryStats",
    "MemoryStore",
]
