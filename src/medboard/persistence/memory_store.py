"""Read access to the project-memory store consumed by the dashboard."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import structlog

from .db import DatabaseManager

logger = structlog.get_logger(__name__)

_COUNT_QUERIES: dict[str, str] = {
    "short_term": "SELECT COUNT(*) FROM short_term_memory",
    "short_term_sessions": "SELECT COUNT(DISTINCT session_id) FROM short_term_memory",
    "working": "SELECT COUNT(*) FROM working_memory",
    "working_phases": "SELECT COUNT(DISTINCT phase_name) FROM working_memory",
    "long_term": "SELECT COUNT(*) FROM long_term_memory WHERE archived = 0",
    "episodic": "SELECT COUNT(*) FROM episodic_memory",
    "checkpoints": "SELECT COUNT(*) FROM session_checkpoints",
    "citations": "SELECT COUNT(*) FROM citation_registry",
    "verified_citations": "SELECT COUNT(*) FROM citation_registry WHERE verified = 1",
}


@dataclass(frozen=True)
class MemoryStats:
    """Row counts per memory tier."""

    short_term: int = 0
    short_term_sessions: int = 0
    working: int = 0
    working_phases: int = 0
    long_term: int = 0
    episodic: int = 0
    checkpoints: int = 0
    citations: int = 0
    verified_citations: int = 0


class MemoryStore:
    """Session-bound reader over the project-memory database.

    ``initialize()`` must succeed before any query; queries on an
    uninitialized store raise RuntimeError.
    """

    def __init__(self, db_path: str | Path, session_id: str):
        self.db_path = Path(db_path)
        self.session_id = session_id
        self._db = DatabaseManager(self.db_path)
        self._initialized = False

    async def initialize(self) -> None:
        """Open the connection and make sure the schema exists."""
        await self._db.init_db()
        self._initialized = True
        logger.info("memory_store_initialized", db_path=str(self.db_path), session_id=self.session_id)

    async def get_stats(self) -> MemoryStats:
        conn = await self._connection()
        counts: dict[str, int] = {}
        for field_name, query in _COUNT_QUERIES.items():
            cursor = await conn.execute(query)
            row = await cursor.fetchone()
            await cursor.close()
            counts[field_name] = int(row[0]) if row and row[0] is not None else 0
        return MemoryStats(**counts)

    async def get_todos(self, phase_name: Optional[str] = None) -> list[dict[str, Any]]:
        """Return task records ordered by priority (desc) then creation (asc)."""
        if phase_name is None:
            return await self._fetch_all(
                "SELECT * FROM todo_list ORDER BY priority DESC, created_at ASC, id ASC"
            )
        return await self._fetch_all(
            "SELECT * FROM todo_list WHERE phase_name = ? ORDER BY priority DESC, created_at ASC, id ASC",
            (phase_name,),
        )

    async def get_phase_progress(self, phase_name: Optional[str] = None) -> list[dict[str, Any]]:
        if phase_name is None:
            return await self._fetch_all("SELECT * FROM phase_progress ORDER BY rowid")
        return await self._fetch_all(
            "SELECT * FROM phase_progress WHERE phase_name = ?",
            (phase_name,),
        )

    async def close(self) -> None:
        """Release the session; safe to call more than once."""
        self._initialized = False
        await self._db.close()

    async def _connection(self):
        if not self._initialized:
            raise RuntimeError("MemoryStore not initialized. Call initialize() first.")
        return await self._db.get_connection()

    async def _fetch_all(self, query: str, params: tuple = ()) -> list[dict[str, Any]]:
        conn = await self._connection()
        cursor = await conn.execute(query, params)
        rows = await cursor.fetchall()
        await cursor.close()
        return [dict(row) for row in rows]
