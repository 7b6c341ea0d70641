from __future__ import annotations

import sqlite3
from pathlib import Path
from sqlite3 import Connection
from typing import Iterable


MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


class MigrationRunner:
    """Apply the SQL migrations bundled with the package."""

    def __init__(self, connection: Connection, migration_paths: Iterable[Path] | None = None):
        self.connection = connection
        self.migration_paths = list(migration_paths) if migration_paths else self._default_paths()

    def _default_paths(self) -> list[Path]:
        if not MIGRATIONS_DIR.exists():
            return []
        return sorted(MIGRATIONS_DIR.glob("*.sql"))

    def apply_all(self) -> None:
        """Execute all configured migrations in order."""

        for path in self.migration_paths:
            sql = path.read_text(encoding="utf-8")
            self.connection.executescript(sql)
        self.connection.commit()


def connect(path: str | Path) -> Connection:
    """Open ``path`` (``":memory:"`` allowed) with foreign keys on and schema applied."""

    if str(path) != ":memory:":
        Path(path).parent.mkdir(parents=True, exist_ok=True)
    connection = sqlite3.connect(str(path))
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA foreign_keys = ON")
    MigrationRunner(connection).apply_all()
    return connection
