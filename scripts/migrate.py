#!/usr/bin/env python3
"""
Project-memory migration runner with SHA-256 checksum verification.

Creates (or upgrades) the store the dashboard reads. Migrations are
applied in lexical order and recorded in schema_migrations; an applied
migration whose file changed afterwards aborts the run.

Usage:
    python -m scripts.migrate [DB_PATH]

DB_PATH defaults to <project root>/.memory/project-memory.db.
"""

import hashlib
import sqlite3
import sys
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

PROJECT_ROOT = Path(__file__).parent.parent
DEFAULT_DB_PATH = PROJECT_ROOT / ".memory" / "project-memory.db"
MIGRATIONS_DIR = PROJECT_ROOT / "src" / "medboard" / "persistence" / "migrations"


def calculate_checksum(file_path: Path) -> str:
    """Hexadecimal SHA-256 of a migration file."""
    return hashlib.sha256(file_path.read_bytes()).hexdigest()


def discover_migrations(migrations_dir: Path) -> List[Tuple[str, Path]]:
    """
    Discover migrations in lexical order.

    Returns:
        List of (migration_name, migration_path) tuples
    """
    return [(f.name, f) for f in sorted(migrations_dir.glob("*.sql"))]


def apply_migrations(db_path: Path, migrations_dir: Path = MIGRATIONS_DIR, verbose: bool = True) -> int:
    """
    Apply pending migrations with checksum verification.

    Args:
        db_path: Path to SQLite database file (parent dirs are created)
        migrations_dir: Directory containing migration files
        verbose: Print per-migration progress

    Returns:
        Number of migrations applied in this run

    Raises:
        RuntimeError: If an applied migration's checksum no longer matches
    """
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)

    def report(message: str) -> None:
        if verbose:
            print(message)

    conn = sqlite3.connect(str(db_path))
    try:
        conn.execute("PRAGMA foreign_keys=ON")
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_migrations (
                migration_name TEXT PRIMARY KEY,
                checksum TEXT NOT NULL,
                applied_at INTEGER NOT NULL
            ) STRICT
        """)
        conn.commit()

        applied = {
            row[0]: row[1]
            for row in conn.execute("SELECT migration_name, checksum FROM schema_migrations")
        }

        migrations = discover_migrations(migrations_dir)
        if not migrations:
            report(f"No migrations found in {migrations_dir}")
            return 0

        applied_count = 0
        for name, path in migrations:
            checksum = calculate_checksum(path)
            if name in applied:
                if checksum != applied[name]:
                    raise RuntimeError(
                        f"Migration {name} has been tampered with!\n"
                        f"Expected checksum: {applied[name]}\n"
                        f"Got checksum: {checksum}"
                    )
                report(f"✓ Skipping {name} (already applied)")
                continue

            report(f"→ Applying migration: {name}")
            with conn:  # Transaction
                conn.executescript(path.read_text())
                conn.execute(
                    "INSERT INTO schema_migrations (migration_name, checksum, applied_at) VALUES (?, ?, ?)",
                    (name, checksum, int(datetime.now().timestamp())),
                )
            applied_count += 1

        report(f"\nApplied {applied_count} of {len(migrations)} migration(s)")
        return applied_count
    finally:
        conn.close()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for migration script.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    args = sys.argv[1:] if argv is None else argv
    db_path = Path(args[0]) if args else DEFAULT_DB_PATH

    if not MIGRATIONS_DIR.exists():
        print(f"Error: Migrations directory not found: {MIGRATIONS_DIR}", file=sys.stderr)
        return 1

    print(f"Database: {db_path}")
    print(f"Migrations: {MIGRATIONS_DIR}\n")

    try:
        apply_migrations(db_path, MIGRATIONS_DIR)
    except (RuntimeError, sqlite3.Error) as e:
        print(f"\n✗ Migration failed: {e}", file=sys.stderr)
        return 1

    print("\n✓ Migrations completed successfully")
    return 0


if __name__ == "__main__":
    sys.exit(main())
