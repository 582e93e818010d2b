import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence

from app.core.errors import PersistenceError, StoreUnavailable
from app.core.logger import logger
from app.models.db_models import BookingRecord, SUBJECT_DELIMITER

SCHEMA = """
    CREATE TABLE IF NOT EXISTS bookings (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        email TEXT NOT NULL,
        subjects TEXT NOT NULL,
        total INTEGER NOT NULL,
        timestamp TEXT NOT NULL
    )
"""

class RecordStore:
    """
    Append-only SQLite store for booking records.

    Every operation runs while holding `gate`. The backup manager takes the
    same lock around its file copy, so a snapshot never sees a half-written
    database.
    """

    def __init__(self, path: str, gate: Optional[threading.Lock] = None, read_only: bool = False):
        self.path = path
        self.gate = gate or threading.Lock()
        self.read_only = read_only
        self._conn: Optional[sqlite3.Connection] = None

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def open(self) -> "RecordStore":
        """
        Opens (or creates) the database file and ensures the bookings table.
        A read-only store opens an existing file without touching it.
        Calling it on an already open store is a no-op.
        Raises StoreUnavailable if the file is unwritable or not a database.
        """
        with self.gate:
            if self._conn is not None:
                return self

            conn = None
            try:
                if self.read_only:
                    uri = Path(self.path).resolve().as_uri() + "?mode=ro"
                    conn = sqlite3.connect(uri, uri=True, check_same_thread=False)
                    conn.row_factory = sqlite3.Row
                    # Fails on a corrupt file or a missing table
                    conn.execute("SELECT 1 FROM bookings LIMIT 1").fetchall()
                else:
                    conn = sqlite3.connect(self.path, check_same_thread=False)
                    conn.row_factory = sqlite3.Row
                    conn.execute(SCHEMA)
                    conn.commit()
            except sqlite3.Error as e:
                if conn is not None:
                    conn.close()
                logger.critical(f"❌ Cannot open booking store at '{self.path}': {e}")
                raise StoreUnavailable(f"Cannot open booking store at {self.path}: {e}") from e

            self._conn = conn
            logger.info(f"✅ Booking store ready: {self.path}")
            return self

    def close(self):
        with self.gate:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
                logger.info(f"🔒 Booking store closed: {self.path}")

    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise PersistenceError("Booking store is not open")
        return self._conn

    def insert(self, name: str, email: str, subjects: Sequence[str], total: int) -> int:
        """Appends one booking and returns its id."""
        return self.insert_record(name, email, subjects, total).id

    def insert_record(self, name: str, email: str, subjects: Sequence[str], total: int) -> BookingRecord:
        """
        Appends one booking and returns it as stored (id and timestamp included).
        The row is written in a single transaction, so a failure leaves nothing behind.
        """
        timestamp = datetime.now(timezone.utc).isoformat(timespec="microseconds")
        with self.gate:
            conn = self._connection()
            try:
                with conn:
                    cursor = conn.execute(
                        "INSERT INTO bookings (name, email, subjects, total, timestamp) VALUES (?, ?, ?, ?, ?)",
                        (name, email, SUBJECT_DELIMITER.join(subjects), total, timestamp),
                    )
                booking_id = cursor.lastrowid
            except sqlite3.Error as e:
                logger.error(f"❌ DB Error (insert): {e}")
                raise PersistenceError(f"Booking could not be saved: {e}") from e

        logger.info(f"✅ Booking {booking_id} saved for {email}")
        return BookingRecord(
            id=booking_id,
            name=name,
            email=email,
            subjects=list(subjects),
            total=total,
            timestamp=datetime.fromisoformat(timestamp),
        )

    def list_all(self) -> List[BookingRecord]:
        """Returns every booking, newest first."""
        with self.gate:
            conn = self._connection()
            try:
                rows = conn.execute(
                    "SELECT * FROM bookings ORDER BY timestamp DESC, id DESC"
                ).fetchall()
            except sqlite3.Error as e:
                logger.error(f"❌ DB Error (list_all): {e}")
                raise PersistenceError(f"Bookings could not be read: {e}") from e

        return [BookingRecord.from_row(row) for row in rows]
