"""Repository layer for the telemetry staging table."""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Any, Callable, Iterable, Iterator

from ..config import TelemetryConfig
from .errors import (
    DuplicateEntryError,
    EntryNotFoundError,
    InvalidPayloadError,
    StoreUnavailableError,
)
from .models import (
    TelemetryBatch,
    TelemetryEntry,
    format_timestamp,
    parse_timestamp,
    utcnow,
)

logger = logging.getLogger(__name__)

# Stay well below SQLite's bound-parameter limit for IN (...) lists
MAX_PARAMS_PER_STATEMENT = 500


def _chunks(items: list[str], size: int = MAX_PARAMS_PER_STATEMENT) -> Iterator[list[str]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class TelemetryRepository:
    """
    Durable, bounded staging queue for telemetry entries.

    Every mutation runs in a single BEGIN IMMEDIATE transaction, so the
    write lock is taken before anything is read. That makes checkout
    (select available, flip to unavailable) and capacity enforcement
    (evict, then insert) atomic across threads and processes sharing the
    same database file. The in-process lock only serializes use of the
    shared connection.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        config: TelemetryConfig | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize the repository.

        Args:
            conn: SQLite connection in autocommit mode (see db.init_db).
            config: Store settings; entries_limit and batch_size are read
                on every call.
            clock: Returns the current aware UTC datetime.
        """
        self.conn = conn
        self.conn.row_factory = sqlite3.Row
        self.config = config or TelemetryConfig()
        self.clock = clock
        self._lock = threading.RLock()

    @property
    def stale_after(self) -> timedelta:
        """How long an entry may stay checked out before it is reclaimed."""
        return timedelta(seconds=self.config.stale_after_seconds)

    # =========================================================================
    # Transactions
    # =========================================================================

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Cursor]:
        """Run the block inside one write transaction."""
        with self._lock:
            try:
                cur = self.conn.cursor()
                cur.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as e:
                raise StoreUnavailableError(f"Cannot start telemetry transaction: {e}") from e

            try:
                yield cur
                cur.execute("COMMIT")
            except sqlite3.IntegrityError as e:
                self._rollback(cur)
                raise DuplicateEntryError(str(e)) from e
            except sqlite3.Error as e:
                self._rollback(cur)
                raise StoreUnavailableError(f"Telemetry store write failed: {e}") from e
            except BaseException:
                self._rollback(cur)
                raise
            finally:
                cur.close()

    def _rollback(self, cur: sqlite3.Cursor) -> None:
        try:
            cur.execute("ROLLBACK")
        except sqlite3.Error as e:
            logger.error(f"Telemetry transaction rollback failed: {e}")

    def _fetchall(self, sql: str, params: tuple = ()) -> list[sqlite3.Row]:
        with self._lock:
            try:
                return self.conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise StoreUnavailableError(f"Telemetry store read failed: {e}") from e

    # =========================================================================
    # Insertion and capacity
    # =========================================================================

    def insert_payload(self, uuid: str, payload: Any) -> None:
        """Stage a new entry, evicting the oldest ones to stay within the limit.

        Eviction and insertion share one transaction, so the table never
        holds more than entries_limit rows once this returns.

        Args:
            uuid: Producer-assigned unique identifier.
            payload: Any JSON-serializable value, stored verbatim.

        Raises:
            InvalidPayloadError: If payload holds NaN or Infinity, which
                the collector cannot decode.
            DuplicateEntryError: If uuid is already staged.
            StoreUnavailableError: If the database cannot be written.
        """
        limit = self.config.entries_limit
        try:
            document = json.dumps(payload, allow_nan=False)
        except ValueError as e:
            raise InvalidPayloadError(f"Telemetry payload for {uuid} is not valid JSON: {e}") from e
        now = format_timestamp(self.clock())

        with self._transaction() as cur:
            evicted = self._keep_top(cur, limit - 1)
            cur.execute(
                """
                INSERT INTO telemetry (uuid, payload, available, last_changed, creation_date)
                VALUES (?, ?, 1, ?, ?)
                """,
                (uuid, document, now, now),
            )

        if evicted:
            logger.debug(f"Evicted {evicted} telemetry entries to stay within limit {limit}")

    def keep_top_entries(self, n: int) -> int:
        """Keep the n most recently created entries and delete the rest.

        Args:
            n: Number of entries to retain (0 deletes everything).

        Returns:
            Number of entries deleted.
        """
        if n < 0:
            raise ValueError(f"n must be >= 0, got {n}")

        with self._transaction() as cur:
            return self._keep_top(cur, n)

    def _keep_top(self, cur: sqlite3.Cursor, n: int) -> int:
        # rowid breaks ties between entries created in the same microsecond
        cur.execute(
            """
            DELETE FROM telemetry WHERE rowid NOT IN (
                SELECT rowid FROM telemetry
                ORDER BY creation_date DESC, rowid DESC
                LIMIT ?
            )
            """,
            (n,),
        )
        return cur.rowcount

    # =========================================================================
    # Checkout and availability
    # =========================================================================

    def get_entries(self) -> TelemetryBatch:
        """Check out up to batch_size available entries for delivery.

        The returned entries are marked unavailable in the same transaction
        that selected them, so no other caller can receive them until they
        are reclaimed or reset.

        Returns:
            The collector url with the checked-out payloads and their uuids.
        """
        batch_size = self.config.batch_size
        now = format_timestamp(self.clock())

        with self._transaction() as cur:
            rows = cur.execute(
                """
                SELECT uuid, payload FROM telemetry
                WHERE available = 1
                ORDER BY creation_date, rowid
                LIMIT ?
                """,
                (batch_size,),
            ).fetchall()
            uuids = [row["uuid"] for row in rows]
            self._set_availability(cur, uuids, False, now)

        if uuids:
            logger.debug(f"Checked out {len(uuids)} telemetry entries")

        return TelemetryBatch(
            url=self.config.server_url,
            events=[json.loads(row["payload"]) for row in rows],
            uuids=uuids,
        )

    def update_availability(self, uuids: Iterable[str], status: bool) -> int:
        """Set the availability of the given entries.

        Unknown uuids are ignored.

        Returns:
            Number of entries updated.
        """
        uuids = list(uuids)
        if not uuids:
            return 0

        now = format_timestamp(self.clock())
        with self._transaction() as cur:
            return self._set_availability(cur, uuids, status, now)

    def _set_availability(self, cur: sqlite3.Cursor, uuids: list[str], status: bool, now: str) -> int:
        changed = 0
        for chunk in _chunks(uuids):
            placeholders = ",".join("?" * len(chunk))
            cur.execute(
                f"UPDATE telemetry SET available = ?, last_changed = ? WHERE uuid IN ({placeholders})",
                (int(status), now, *chunk),
            )
            changed += cur.rowcount
        return changed

    def refresh_availability(self) -> int:
        """Make entries that have been checked out for too long available again.

        Covers delivery clients that crashed or never acknowledged.

        Returns:
            Number of entries reclaimed.
        """
        now = self.clock()
        cutoff = format_timestamp(now - self.stale_after)

        with self._transaction() as cur:
            rows = cur.execute(
                "SELECT uuid FROM telemetry WHERE available = 0 AND last_changed < ?",
                (cutoff,),
            ).fetchall()
            reclaimed = self._set_availability(
                cur, [row["uuid"] for row in rows], True, format_timestamp(now)
            )

        if reclaimed:
            logger.info(f"Reclaimed {reclaimed} stale telemetry entries")
        return reclaimed

    # =========================================================================
    # Removal
    # =========================================================================

    def remove_many(self, uuids: Iterable[str]) -> int:
        """Delete entries by uuid; missing ones are ignored.

        Returns:
            Number of entries deleted.
        """
        uuids = list(uuids)
        if not uuids:
            return 0

        removed = 0
        with self._transaction() as cur:
            for chunk in _chunks(uuids):
                placeholders = ",".join("?" * len(chunk))
                cur.execute(f"DELETE FROM telemetry WHERE uuid IN ({placeholders})", chunk)
                removed += cur.rowcount
        return removed

    def remove_payload(self, uuid: str) -> bool:
        """Delete a single entry. Returns True if it existed."""
        with self._transaction() as cur:
            cur.execute("DELETE FROM telemetry WHERE uuid = ?", (uuid,))
            return cur.rowcount > 0

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_entry(self, uuid: str) -> TelemetryEntry:
        """Get a staged entry by uuid.

        Raises:
            EntryNotFoundError: If no entry has this uuid.
        """
        rows = self._fetchall("SELECT * FROM telemetry WHERE uuid = ?", (uuid,))
        if not rows:
            raise EntryNotFoundError(uuid)
        return self._row_to_entry(rows[0])

    def count(self) -> int:
        """Total number of staged entries."""
        return self._fetchall("SELECT COUNT(*) AS cnt FROM telemetry")[0]["cnt"]

    def count_available(self) -> int:
        """Number of entries waiting to be checked out."""
        return self._fetchall("SELECT COUNT(*) AS cnt FROM telemetry WHERE available = 1")[0]["cnt"]

    def _row_to_entry(self, row: sqlite3.Row) -> TelemetryEntry:
        return TelemetryEntry(
            uuid=row["uuid"],
            payload=json.loads(row["payload"]),
            available=bool(row["available"]),
            last_changed=parse_timestamp(row["last_changed"]),
            creation_date=parse_timestamp(row["creation_date"]),
        )
