import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

SCHEMA_PATH = Path(__file__).parent / "schema.sql"

class DatabaseConfig:
    """Location of the finance tracker database file."""

    def __init__(self, db_path: Path | str = "data/finance_tracker.db"):
        self.db_path = Path(db_path)
        # A fresh install has no data/ directory yet
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

class DatabaseManager:
    """
    Owns the single SQLite connection behind the key-value slots.

    Opened on first use; closed by ``close()`` or on leaving a ``with`` block.
    Rows come back as ``sqlite3.Row`` so columns are read by name.
    """

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._connection: sqlite3.Connection | None = None

    def get_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            self._connection = sqlite3.connect(str(self.config.db_path.absolute()))
            self._connection.row_factory = sqlite3.Row
        return self._connection

    def close(self) -> None:
        if self._connection:
            self._connection.close()
            self._connection = None

    @contextmanager
    def transaction(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Run a slot write atomically: commit on success, roll back on any error.

        Usage:
            with db_manager.transaction() as conn:
                conn.execute("DELETE FROM key_value_store WHERE key = ?", (key,))
        """
        conn = self.get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise

    def __enter__(self) -> "DatabaseManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

def execute_schema(conn: sqlite3.Connection, schema_path: Path = SCHEMA_PATH) -> None:
    """Create the key-value tables if missing. Safe to run on every start."""
    conn.executescript(schema_path.read_text())
    conn.commit()
