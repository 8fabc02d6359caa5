"""Database connection management with WAL mode and pragma configuration."""

import hashlib
import time
from pathlib import Path
from typing import Optional

import aiosqlite
import structlog

logger = structlog.get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"


class DatabaseManager:
    """Manages the project-memory SQLite connection with WAL mode and optimal pragmas."""

    def __init__(self, db_path: str | Path, migrations_dir: Optional[Path] = None):
        """
        Initialize database manager.

        Args:
            db_path: Path to SQLite database file
            migrations_dir: Directory of *.sql schema migrations (default: bundled)
        """
        self.db_path = Path(db_path)
        self.migrations_dir = migrations_dir or MIGRATIONS_DIR
        self._connection: Optional[aiosqlite.Connection] = None

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    async def get_connection(self) -> aiosqlite.Connection:
        """
        Get database connection with WAL mode and optimized pragmas.

        Returns:
            SQLite connection with WAL mode enabled

        Note:
            Connection is cached after first creation.
            All pragmas are set on connection creation.
        """
        if self._connection is not None:
            return self._connection

        # Ensure database directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(str(self.db_path))
        conn.row_factory = aiosqlite.Row

        try:
            await conn.execute("PRAGMA foreign_keys=ON")
            await conn.execute("PRAGMA journal_mode=WAL")
            await conn.execute("PRAGMA busy_timeout=5000")

            cursor = await conn.execute("PRAGMA journal_mode")
            mode = await cursor.fetchone()
            await cursor.close()

            if mode[0].lower() != 'wal':
                raise RuntimeError(
                    f"Failed to enable WAL mode. Expected 'wal', got '{mode[0]}'. "
                    "WAL mode is required so the dashboard can read while agents write."
                )
        except Exception:
            # Clean up connection on any pragma configuration failure
            await conn.close()
            raise

        logger.info(
            "database_connection_established",
            db_path=str(self.db_path),
            journal_mode=mode[0]
        )

        self._connection = conn
        return conn

    async def init_db(self) -> int:
        """
        Apply pending schema migrations in lexical order.

        Migrations already recorded in schema_migrations are skipped; a
        checksum mismatch on an applied migration raises RuntimeError.

        Returns:
            Number of migrations applied
        """
        conn = await self.get_connection()

        await conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_migrations (
                migration_name TEXT PRIMARY KEY,
                checksum TEXT NOT NULL,
                applied_at INTEGER NOT NULL
            ) STRICT
        """)
        await conn.commit()

        cursor = await conn.execute("SELECT migration_name, checksum FROM schema_migrations")
        applied = {row[0]: row[1] for row in await cursor.fetchall()}
        await cursor.close()

        applied_count = 0
        for path in sorted(self.migrations_dir.glob("*.sql")):
            checksum = hashlib.sha256(path.read_bytes()).hexdigest()
            if path.name in applied:
                if applied[path.name] != checksum:
                    raise RuntimeError(
                        f"Migration {path.name} has been modified after being applied "
                        f"(expected {applied[path.name]}, got {checksum})"
                    )
                continue

            await conn.executescript(path.read_text())
            await conn.execute(
                "INSERT INTO schema_migrations (migration_name, checksum, applied_at) VALUES (?, ?, ?)",
                (path.name, checksum, int(time.time())),
            )
            await conn.commit()
            applied_count += 1
            logger.info("migration_applied", migration=path.name, db_path=str(self.db_path))

        return applied_count

    async def close(self) -> None:
        """Close database connection."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("database_connection_closed", db_path=str(self.db_path))
