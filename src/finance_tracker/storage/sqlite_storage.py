from typing import List, Optional

from finance_tracker.database.connection import DatabaseManager, execute_schema
from finance_tracker.storage.base import KeyValueStorage
from finance_tracker.logging_setup import get_logger

logger = get_logger(__name__)

class SQLiteKeyValueStorage(KeyValueStorage):
    """
    SQLite implementation of KeyValueStorage.

    Each slot is one row of the ``key_value_store`` table. The schema is
    applied on construction, so a fresh database file works immediately.
    """

    def __init__(self, db_manager: DatabaseManager):
        self.db = db_manager
        execute_schema(self.db.get_connection())

    def get_item(self, key: str) -> Optional[str]:
        """Read a slot, or None if it doesn't exist"""
        conn = self.db.get_connection()
        cursor = conn.execute(
            "SELECT value FROM key_value_store WHERE key = ?",
            (key,)
        )
        row = cursor.fetchone()

        if row is None:
            return None

        return row["value"]

    def set_item(self, key: str, value: str) -> None:
        """Upsert a slot"""
        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO key_value_store (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (key, value),
            )
        logger.debug("Wrote %d bytes to slot %r", len(value), key)

    def remove_item(self, key: str) -> None:
        """Delete a slot"""
        with self.db.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM key_value_store WHERE key = ?",
                (key,)
            )
        if cursor.rowcount:
            logger.debug("Removed slot %r", key)

    def keys(self) -> List[str]:
        """All slot names currently stored"""
        conn = self.db.get_connection()
        cursor = conn.execute("SELECT key FROM key_value_store ORDER BY key")
        return [row["key"] for row in cursor.fetchall()]

    def schema_version(self) -> Optional[int]:
        """Latest applied schema version"""
        conn = self.db.get_connection()
        row = conn.execute(
            "SELECT MAX(version) AS version FROM schema_version"
        ).fetchone()
        return row["version"] if row else None
