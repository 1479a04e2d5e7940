"""SQLite record store for split-ledger.

Records are stored as pydantic JSON, so every amount is a decimal string and
round-trips without loss. Each edit inserts a new (record_id, version) row;
older versions stay in the table as history. The settled flag lives in its own
column because settling is not an edit of the split.
"""

import sqlite3
from datetime import datetime
from pathlib import Path

from .exceptions import DuplicateRecordError, RecordNotFoundError
from .models import ExpenseRecord

_RECORD_COLUMNS = "record_id, version, payload, settled, created_at"


class Database:
    """SQLite database manager."""

    def __init__(self, db_path: Path | str):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()

        # Expense record versions
        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS expense_records (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                record_id TEXT NOT NULL,
                version INTEGER NOT NULL,
                payload TEXT NOT NULL,
                settled INTEGER NOT NULL DEFAULT 0,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                UNIQUE (record_id, version)
            )
        """
        )

        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> ExpenseRecord:
        record = ExpenseRecord.model_validate_json(row["payload"])
        return record.with_settled(bool(row["settled"]))

    # ========================================================================
    # Record operations
    # ========================================================================

    def save_record(self, record: ExpenseRecord) -> int:
        """Insert a record version. Versions are never overwritten."""
        cursor = self.conn.cursor()
        try:
            cursor.execute(
                """
                INSERT INTO expense_records (
                    record_id, version, payload, settled, created_at
                ) VALUES (?, ?, ?, ?, ?)
                """,
                (
                    record.id,
                    record.version,
                    record.model_dump_json(exclude={"settled"}),
                    int(record.settled),
                    datetime.now().isoformat(),
                ),
            )
        except sqlite3.IntegrityError as e:
            raise DuplicateRecordError(record.id, record.version) from e
        self.conn.commit()
        row_id = cursor.lastrowid
        if row_id is None:
            raise RuntimeError("Failed to insert expense record")
        return row_id

    def get_record(self, record_id: str) -> ExpenseRecord | None:
        """Get the latest version of a record."""
        cursor = self.conn.cursor()
        cursor.execute(
            f"""
            SELECT {_RECORD_COLUMNS}
            FROM expense_records
            WHERE record_id = ?
            ORDER BY version DESC
            LIMIT 1
            """,
            (record_id,),
        )
        row = cursor.fetchone()
        return self._row_to_record(row) if row else None

    def get_record_history(self, record_id: str) -> list[ExpenseRecord]:
        """Get every stored version of a record, oldest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            f"""
            SELECT {_RECORD_COLUMNS}
            FROM expense_records
            WHERE record_id = ?
            ORDER BY version ASC
            """,
            (record_id,),
        )
        return [self._row_to_record(row) for row in cursor.fetchall()]

    def get_latest_records(self) -> list[ExpenseRecord]:
        """Get the latest version of every record, ordered by record id."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT r.record_id, r.version, r.payload, r.settled, r.created_at
            FROM expense_records r
            JOIN (
                SELECT record_id, MAX(version) AS version
                FROM expense_records
                GROUP BY record_id
            ) latest
              ON r.record_id = latest.record_id AND r.version = latest.version
            ORDER BY r.record_id
            """
        )
        return [self._row_to_record(row) for row in cursor.fetchall()]

    def set_settled(self, record_id: str, settled: bool = True) -> ExpenseRecord:
        """Mark the latest version of a record settled (or outstanding again)."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            UPDATE expense_records
            SET settled = ?
            WHERE record_id = ?
              AND version = (
                SELECT MAX(version) FROM expense_records WHERE record_id = ?
              )
            """,
            (int(settled), record_id, record_id),
        )
        self.conn.commit()
        if cursor.rowcount == 0:
            raise RecordNotFoundError(record_id)

        record = self.get_record(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        return record

    def count_records(self) -> int:
        """Number of distinct record ids."""
        cursor = self.conn.cursor()
        cursor.execute("SELECT COUNT(DISTINCT record_id) AS n FROM expense_records")
        row = cursor.fetchone()
        return int(row["n"])
