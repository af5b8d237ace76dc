"""Development application database interface.

Provides schema management, insert-or-skip / insert-or-replace persistence
and query helpers for the scraped ``data`` table.
"""

from __future__ import annotations

import argparse
import json
import sqlite3
from contextlib import closing
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from .logging_config import get_logger
from .models import DevelopmentApplication

logger = get_logger("database")

ISO_TIMESTAMP_SUFFIX = "Z"

CORE_COLUMNS = (
    "council_reference",
    "address",
    "description",
    "info_url",
    "date_scraped",
    "date_received",
)
COMMENT_COLUMNS = ("comment_url",)
NOTICE_COLUMNS = ("on_notice_from", "on_notice_to")


def _utc_now() -> str:
    """Return a UTC timestamp string with second precision."""
    now = datetime.now(timezone.utc).replace(microsecond=0, tzinfo=None)
    return now.isoformat() + ISO_TIMESTAMP_SUFFIX


class PersistenceError(RuntimeError):
    """A write to the backing store failed."""


@dataclass(frozen=True)
class SchemaCapabilities:
    """Optional columns present in the live ``data`` table.

    Databases created by older scrapers lack ``comment_url`` or the notice
    period columns; values for missing columns are dropped on insert.
    """

    comment_url: bool = True
    notice_period: bool = True

    @classmethod
    def from_columns(cls, columns: Sequence[str]) -> "SchemaCapabilities":
        present = set(columns)
        return cls(
            comment_url=set(COMMENT_COLUMNS) <= present,
            notice_period=set(NOTICE_COLUMNS) <= present,
        )

    def columns(self) -> List[str]:
        columns = list(CORE_COLUMNS)
        if self.comment_url:
            columns.extend(COMMENT_COLUMNS)
        if self.notice_period:
            columns.extend(NOTICE_COLUMNS)
        return columns


@dataclass
class RecordOperationResult:
    """Represents the outcome of an upsert operation."""

    status: str
    council_reference: str
    message: Optional[str] = None
    ingestion_run_id: Optional[int] = None


class DevelopmentApplicationDatabase:
    """High-level helper for the scraper's SQLite database.

    Holds a single connection; every write runs on its own cursor which is
    closed before the next statement is issued.
    """

    DEFAULT_DB_PATH = Path("data.sqlite")
    ON_CONFLICT_POLICIES = ("ignore", "replace")

    def __init__(
        self,
        db_path: Optional[Union[str, Path]] = None,
        *,
        on_conflict: str = "ignore",
        auto_initialize: bool = True,
        read_only: bool = False,
    ) -> None:
        if on_conflict not in self.ON_CONFLICT_POLICIES:
            raise ValueError(f"Unknown on_conflict policy: {on_conflict!r}")
        path = Path(db_path) if db_path else self.DEFAULT_DB_PATH
        if not path.is_absolute():
            path = Path.cwd() / path
        self.db_path = path
        self.on_conflict = on_conflict
        self.read_only = read_only
        self.capabilities = SchemaCapabilities()
        self.has_data_table = False
        self._conn: Optional[sqlite3.Connection] = None
        if auto_initialize:
            self.initialize()

    # ------------------------------------------------------------------
    # Lifecycle helpers
    # ------------------------------------------------------------------
    def initialize(self) -> None:
        """Ensure the schema exists and resolve which optional columns it has.

        A read-only database is never written to; only its existing columns
        are inspected.
        """
        if not self.read_only:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = self._connection()
        if not self.read_only:
            self._create_schema(conn)
            conn.commit()
        columns = self._table_columns(conn, "data")
        self.has_data_table = bool(columns)
        self.capabilities = SchemaCapabilities.from_columns(columns)
        logger.debug(
            "Database %s ready (comment_url=%s, notice_period=%s)",
            self.db_path,
            self.capabilities.comment_url,
            self.capabilities.notice_period,
        )

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self) -> "DevelopmentApplicationDatabase":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            if self.read_only:
                self._conn = sqlite3.connect(f"{self.db_path.as_uri()}?mode=ro", uri=True)
            else:
                self._conn = sqlite3.connect(str(self.db_path))
            self._conn.row_factory = sqlite3.Row
        return self._conn

    @staticmethod
    def _create_schema(conn: sqlite3.Connection) -> None:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS [data] (
                [council_reference] TEXT PRIMARY KEY,
                [address] TEXT,
                [description] TEXT,
                [info_url] TEXT,
                [comment_url] TEXT,
                [date_scraped] TEXT,
                [date_received] TEXT,
                [on_notice_from] TEXT,
                [on_notice_to] TEXT
            );

            CREATE TABLE IF NOT EXISTS ingestion_runs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                started_at TEXT NOT NULL,
                completed_at TEXT,
                status TEXT NOT NULL DEFAULT 'running',
                inserted_records INTEGER NOT NULL DEFAULT 0,
                replaced_records INTEGER NOT NULL DEFAULT 0,
                skipped_records INTEGER NOT NULL DEFAULT 0,
                metadata TEXT
            );

            CREATE INDEX IF NOT EXISTS idx_data_date_received ON [data](date_received);
            CREATE INDEX IF NOT EXISTS idx_runs_started_at ON ingestion_runs(started_at);
            """
        )

    @staticmethod
    def _table_columns(conn: sqlite3.Connection, table: str) -> List[str]:
        with closing(conn.execute(f"PRAGMA table_info([{table}])")) as cursor:
            return [row["name"] for row in cursor.fetchall()]

    # ------------------------------------------------------------------
    # Ingestion run helpers
    # ------------------------------------------------------------------
    def start_ingestion_run(self, metadata: Optional[Dict[str, Any]] = None) -> int:
        conn = self._connection()
        with closing(conn.cursor()) as cursor:
            cursor.execute(
                "INSERT INTO ingestion_runs (started_at, metadata) VALUES (?, ?)",
                (_utc_now(), self._to_json(metadata)),
            )
            run_id = int(cursor.lastrowid)
        conn.commit()
        return run_id

    def complete_ingestion_run(
        self,
        run_id: int,
        *,
        status: str = "completed",
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        conn = self._connection()
        with closing(conn.cursor()) as cursor:
            cursor.execute(
                """
                UPDATE ingestion_runs
                   SET status = ?,
                       completed_at = ?,
                       metadata = COALESCE(?, metadata)
                 WHERE id = ?
                """,
                (status, _utc_now(), self._to_json(metadata), run_id),
            )
        conn.commit()

    def get_ingestion_run(self, run_id: int) -> Optional[Dict[str, Any]]:
        with closing(self._connection().execute("SELECT * FROM ingestion_runs WHERE id = ?", (run_id,))) as cursor:
            row = cursor.fetchone()
        if row is None:
            return None
        data = dict(row)
        data["metadata"] = self._from_json(data.get("metadata"), default={})
        return data

    @staticmethod
    def _increment_ingestion_run(cursor: sqlite3.Cursor, run_id: int, status: str) -> None:
        column = {
            "inserted": "inserted_records",
            "replaced": "replaced_records",
            "skipped": "skipped_records",
        }[status]
        cursor.execute(f"UPDATE ingestion_runs SET {column} = {column} + 1 WHERE id = ?", (run_id,))

    # ------------------------------------------------------------------
    # Record persistence
    # ------------------------------------------------------------------
    def exists(self, council_reference: str) -> bool:
        with closing(
            self._connection().execute(
                "SELECT 1 FROM [data] WHERE council_reference = ?",
                (council_reference,),
            )
        ) as cursor:
            return cursor.fetchone() is not None

    def upsert(
        self,
        record: DevelopmentApplication,
        *,
        ingestion_run_id: Optional[int] = None,
    ) -> RecordOperationResult:
        """Store ``record`` under its council reference.

        With the ``ignore`` policy an existing row is left untouched and the
        result status is ``skipped``; with ``replace`` it is overwritten and
        the status is ``replaced``. New references are always ``inserted``.
        """
        if not record.council_reference:
            raise ValueError("council_reference is required")
        if not record.address:
            raise ValueError("address is required")

        columns = self.capabilities.columns()
        params = record.to_db_params()
        values = [params[column] for column in columns]
        column_list = ", ".join(f"[{column}]" for column in columns)
        placeholders = ", ".join("?" for _ in columns)
        verb = "INSERT OR IGNORE" if self.on_conflict == "ignore" else "INSERT OR REPLACE"

        conn = self._connection()
        try:
            existed = self.on_conflict == "replace" and self.exists(record.council_reference)
            with closing(conn.cursor()) as cursor:
                cursor.execute(f"{verb} INTO [data] ({column_list}) VALUES ({placeholders})", values)
                if cursor.rowcount > 0:
                    status = "replaced" if existed else "inserted"
                else:
                    status = "skipped"
                if ingestion_run_id is not None:
                    self._increment_ingestion_run(cursor, ingestion_run_id, status)
            conn.commit()
        except sqlite3.Error as exc:
            conn.rollback()
            logger.error(
                '    Error: application "%s" could not be stored: %s',
                record.council_reference,
                exc,
            )
            raise PersistenceError(f"Failed to store application {record.council_reference}: {exc}") from exc

        logger.info(self._result_message(status, record))
        return RecordOperationResult(
            status=status,
            council_reference=record.council_reference,
            message=self._result_message(status, record),
            ingestion_run_id=ingestion_run_id,
        )

    # ------------------------------------------------------------------
    # Query helpers
    # ------------------------------------------------------------------
    def get_record(self, council_reference: str) -> Optional[Dict[str, Any]]:
        with closing(
            self._connection().execute(
                "SELECT * FROM [data] WHERE council_reference = ?",
                (council_reference,),
            )
        ) as cursor:
            row = cursor.fetchone()
        return dict(row) if row is not None else None

    def get_all_records(self) -> List[Dict[str, Any]]:
        """All stored applications ordered by council reference."""
        with closing(self._connection().execute("SELECT * FROM [data] ORDER BY council_reference")) as cursor:
            return [dict(row) for row in cursor.fetchall()]

    def count_records(self) -> int:
        with closing(self._connection().execute("SELECT COUNT(*) FROM [data]")) as cursor:
            (count,) = cursor.fetchone()
        return int(count)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _to_json(value: Optional[Any]) -> Optional[str]:
        if value is None:
            return None
        return json.dumps(value, sort_keys=True)

    @staticmethod
    def _from_json(value: Optional[str], default: Any) -> Any:
        if not value:
            return default
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return default

    @staticmethod
    def _result_message(status: str, record: DevelopmentApplication) -> str:
        subject = (
            f'application "{record.council_reference}" with address "{record.address}" '
            f'and description "{record.description}"'
        )
        if status == "inserted":
            return f"    Inserted: {subject} into the database."
        if status == "replaced":
            return f"    Replaced: {subject} in the database."
        return f"    Skipped: {subject} because it was already present in the database."


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Development application database helper")
    parser.add_argument("--init", action="store_true", help="Create the data table if it is missing")
    parser.add_argument("--db-path", help="Override database path", default=None)
    args = parser.parse_args(argv)

    db = DevelopmentApplicationDatabase(db_path=args.db_path, auto_initialize=False)
    if args.init:
        db.initialize()
        db.close()
        print(f"Initialised database at {db.db_path}")
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
