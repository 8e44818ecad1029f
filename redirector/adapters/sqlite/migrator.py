"""
SQL file migrations for the rule store.

Each ``NNN_name.sql`` file in the migrations directory is applied once, in
filename order, and recorded in ``_migrations``. Only the part above a
``-- Down`` marker is executed.
"""

import logging
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_MIGRATIONS_DIR = Path(__file__).parent / "migrations"
DOWN_MARKER = "-- Down"


class SQLiteMigrator:
    def __init__(self, db_path: str, migrations_dir: str | Path = DEFAULT_MIGRATIONS_DIR):
        self.db_path = db_path
        self.migrations_dir = Path(migrations_dir)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS _migrations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                filename TEXT UNIQUE NOT NULL,
                applied_at DATETIME DEFAULT CURRENT_TIMESTAMP
            );
        """)
        return conn

    def applied(self) -> set[str]:
        """Filenames already recorded as applied."""
        conn = self._connect()
        try:
            return {row[0] for row in conn.execute("SELECT filename FROM _migrations")}
        finally:
            conn.close()

    def pending(self) -> list[Path]:
        """Migration files not yet applied, in the order they will run."""
        done = self.applied()
        return [p for p in sorted(self.migrations_dir.glob("*.sql")) if p.name not in done]

    def run_migrations(self) -> list[str]:
        """Apply all pending migrations. Returns the filenames applied."""
        pending = self.pending()
        if not pending:
            return []

        conn = self._connect()
        try:
            for path in pending:
                logger.info("Applying migration: %s", path.name)
                up_script = path.read_text().split(DOWN_MARKER, 1)[0]
                try:
                    conn.executescript(up_script)
                    conn.execute("INSERT INTO _migrations (filename) VALUES (?)", (path.name,))
                    conn.commit()
                except sqlite3.Error as e:
                    conn.rollback()
                    raise RuntimeError(f"Migration {path.name} failed: {e}") from e
        finally:
            conn.close()

        return [path.name for path in pending]
