#! /usr/bin/python3
# -*- coding: utf-8 -*-
"""SQLite schema and async data access for PocketJournal."""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional, Sequence, Tuple
import logging
import sqlite3

import aiosqlite

from .errors import SchemaVersionError, StorageUnavailableError
from .model import Category, Entry, EntryKind
from .subscriptions import Subscription, SubscriptionRegistry

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


# ---------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;

CREATE TABLE IF NOT EXISTS entries (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    name        TEXT NOT NULL,
    kind        TEXT NOT NULL,
    value       TEXT NOT NULL,
    timestamp   INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_entries_timestamp ON entries(timestamp);
"""

ENTRY_COLUMNS = ("id", "name", "kind", "value", "timestamp")

# Kinds sort by declaration order, not by the text of their tag.
KIND_ORDER_SQL = "CASE kind {} ELSE {} END".format(
    " ".join(f"WHEN '{kind.value}' THEN {kind.rank}" for kind in EntryKind),
    len(EntryKind),
)

ORDER_BY = {
    None: "",
    "name_asc": " ORDER BY name ASC, id ASC",
    "name_desc": " ORDER BY name DESC, id DESC",
    "kind_asc": f" ORDER BY {KIND_ORDER_SQL} ASC, id ASC",
}

DAY_RANGE_WHERE = "timestamp >= ? AND timestamp < ?"


async def _table_columns(db: aiosqlite.Connection, table: str) -> List[str]:
    """Return the column names of `table` (empty if it does not exist)."""
    cur = await db.execute(f"PRAGMA table_info({table})")
    rows = await cur.fetchall()
    await cur.close()
    # PRAGMA table_info columns: cid, name, type, notnull, default_value, pk
    return [r[1] for r in rows]


def _parse_kind(tag: str) -> EntryKind:
    try:
        return EntryKind(tag)
    except ValueError as exc:
        raise StorageUnavailableError(f"Unknown kind tag {tag!r} in entries table") from exc


def _row_to_entry(row: aiosqlite.Row) -> Entry:
    return Entry(
        id=row["id"],
        name=row["name"],
        kind=_parse_kind(row["kind"]),
        value=row["value"],
        timestamp=row["timestamp"],
    )


# ---------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------

class EntryStore:
    """The entries table behind one long-lived aiosqlite connection.

    Construct it explicitly and pass it to whatever needs it::

        async with EntryStore("journal.sqlite3") as store:
            new_id = await store.insert(entry)

    Mutations that change rows broadcast to every live subscription.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        self.subscriptions = SubscriptionRegistry()
        self._db: Optional[aiosqlite.Connection] = None

    # -- connection / initialization ---------------------------------

    async def open(self) -> "EntryStore":
        """Connect, create the table on first run and check the schema."""
        if self._db is not None:
            return self
        async with self._guard("open"):
            db = await aiosqlite.connect(self.db_path)
        db.row_factory = aiosqlite.Row
        try:
            async with self._guard("initialize"):
                await self._init_schema(db)
        except BaseException:
            await db.close()
            raise
        self._db = db
        logger.info("Opened entry store at %s", self.db_path)
        return self

    async def _init_schema(self, db: aiosqlite.Connection) -> None:
        cur = await db.execute("PRAGMA user_version")
        row = await cur.fetchone()
        await cur.close()
        version = row[0]
        if version not in (0, SCHEMA_VERSION):
            raise SchemaVersionError(
                f"Database schema version {version} is not supported "
                f"(expected {SCHEMA_VERSION})"
            )

        columns = await _table_columns(db, "entries")
        missing = [c for c in ENTRY_COLUMNS if c not in columns]
        if columns and missing:
            raise SchemaVersionError(
                f"Table 'entries' is missing columns: {', '.join(missing)}"
            )

        await db.executescript(SCHEMA_SQL)
        if version == 0:
            await db.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
        await db.commit()

    async def close(self) -> None:
        """Close all subscriptions and the connection."""
        self.subscriptions.close_all()
        if self._db is None:
            return
        db, self._db = self._db, None
        await db.close()
        logger.info("Closed entry store at %s", self.db_path)

    async def __aenter__(self) -> "EntryStore":
        return await self.open()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @asynccontextmanager
    async def _guard(self, action: str) -> AsyncIterator[None]:
        """Turn sqlite failures during *action* into StorageUnavailableError."""
        try:
            yield
        except sqlite3.DatabaseError as exc:
            logger.error("Entry store %s failed during %s: %s", self.db_path, action, exc)
            raise StorageUnavailableError(f"Cannot {action} {self.db_path}: {exc}") from exc

    def _conn(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StorageUnavailableError(f"Entry store {self.db_path} is not open")
        return self._db

    async def _write(self, action: str, sql: str, params: Sequence) -> Tuple[int, int]:
        """Run a write statement and commit; return (rowcount, lastrowid)."""
        db = self._conn()
        async with self._guard(action):
            cur = await db.execute(sql, tuple(params))
            changed, rowid = cur.rowcount, cur.lastrowid
            await cur.close()
            await db.commit()
        if changed > 0:
            await self.subscriptions.broadcast()
        return changed, rowid

    async def _select(self, sql: str, params: Sequence = ()) -> List[aiosqlite.Row]:
        db = self._conn()
        async with self._guard("read"):
            cur = await db.execute(sql, tuple(params))
            rows = await cur.fetchall()
            await cur.close()
        return list(rows)

    # -- mutations ----------------------------------------------------

    async def insert(self, entry: Entry) -> Optional[int]:
        """Insert *entry* with a fresh id; return it, or None if ignored."""
        if entry.kind is EntryKind.NONE:
            logger.warning("Persisting entry %r without a chosen kind", entry.name)
        changed, rowid = await self._write(
            "insert",
            """
            INSERT OR IGNORE INTO entries (name, kind, value, timestamp)
            VALUES (?, ?, ?, ?)
            """,
            (entry.name, entry.kind.value, entry.value, entry.timestamp),
        )
        if changed == 0:
            logger.debug("Insert of %r ignored by conflict policy", entry.name)
            return None
        logger.debug("Inserted entry %d (%r)", rowid, entry.name)
        return rowid

    async def update(self, entry: Entry) -> None:
        """Replace name/kind/value of the row with *entry.id*; keep its timestamp."""
        if entry.kind is EntryKind.NONE:
            logger.warning("Persisting entry %d without a chosen kind", entry.id)
        changed, _ = await self._write(
            "update",
            """
            UPDATE entries
               SET name = ?, kind = ?, value = ?
             WHERE id = ?
            """,
            (entry.name, entry.kind.value, entry.value, entry.id),
        )
        logger.debug("Updated entry %d (%d row(s))", entry.id, changed)

    async def delete(self, entry: Entry) -> None:
        """Delete the row for *entry* (matched by primary key)."""
        await self.delete_by_id(entry.id)

    async def delete_by_id(self, entry_id: int) -> None:
        changed, _ = await self._write(
            "delete", "DELETE FROM entries WHERE id = ?", (entry_id,)
        )
        logger.debug("Deleted entry %d (%d row(s))", entry_id, changed)

    # -- one-shot reads -----------------------------------------------

    async def fetch_entries(
        self,
        where: str = "",
        params: Sequence = (),
        order: Optional[str] = None,
    ) -> List[Entry]:
        """Return the entries matching *where*, ordered by *order*."""
        sql = "SELECT id, name, kind, value, timestamp FROM entries"
        if where:
            sql += f" WHERE {where}"
        sql += ORDER_BY[order]
        rows = await self._select(sql, params)
        return [_row_to_entry(r) for r in rows]

    async def fetch_entry(self, entry_id: int) -> Optional[Entry]:
        entries = await self.fetch_entries("id = ?", (entry_id,))
        return entries[0] if entries else None

    async def fetch_categories(self) -> List[Category]:
        """Return each distinct name with the kind of its oldest entry."""
        rows = await self._select(
            """
            SELECT name, kind
              FROM entries
             WHERE id IN (SELECT MIN(id) FROM entries GROUP BY name)
             ORDER BY name ASC
            """
        )
        return [Category(name=r["name"], kind=_parse_kind(r["kind"])) for r in rows]

    async def count_by_name_like(self, pattern: str) -> int:
        """Count rows whose name matches SQL LIKE *pattern*.

        One read of the current table, not a subscription: awaiting it is the
        whole call, and later writes do not update the result.
        """
        rows = await self._select(
            "SELECT COUNT(*) FROM entries WHERE name LIKE ?", (pattern,)
        )
        return int(rows[0][0])

    # -- reactive reads -----------------------------------------------

    async def _subscribe_entries(
        self,
        key: tuple,
        where: str = "",
        params: Sequence = (),
        order: Optional[str] = None,
    ) -> Subscription:
        async def query() -> List[Entry]:
            return await self.fetch_entries(where, params, order)

        return await self.subscriptions.open(key, query)

    async def get_all(self) -> Subscription:
        return await self._subscribe_entries(("all",))

    async def get_by_date_range(self, start: int, end: int) -> Subscription:
        """Entries with ``start <= timestamp < end``."""
        return await self._subscribe_entries(
            ("date_range", start, end), DAY_RANGE_WHERE, (start, end)
        )

    async def get_by_name(self, name: str) -> Subscription:
        return await self._subscribe_entries(("name", name), "name = ?", (name,))

    async def get_by_id(self, entry_id: int) -> Subscription:
        """Single-entry subscription; emits nothing while the row is absent."""
        async def query() -> Optional[Entry]:
            return await self.fetch_entry(entry_id)

        return await self.subscriptions.open(
            ("id", entry_id), query, skip=lambda entry: entry is None
        )

    async def get_all_by_name_asc(self) -> Subscription:
        return await self._subscribe_entries(("all", "name_asc"), order="name_asc")

    async def get_all_by_name_desc(self) -> Subscription:
        return await self._subscribe_entries(("all", "name_desc"), order="name_desc")

    async def get_all_by_kind_asc(self) -> Subscription:
        return await self._subscribe_entries(("all", "kind_asc"), order="kind_asc")

    async def get_by_date_range_by_name_asc(self, start: int, end: int) -> Subscription:
        return await self._subscribe_entries(
            ("date_range", start, end, "name_asc"), DAY_RANGE_WHERE, (start, end), "name_asc"
        )

    async def get_by_date_range_by_name_desc(self, start: int, end: int) -> Subscription:
        return await self._subscribe_entries(
            ("date_range", start, end, "name_desc"), DAY_RANGE_WHERE, (start, end), "name_desc"
        )

    async def get_by_date_range_by_kind_asc(self, start: int, end: int) -> Subscription:
        return await self._subscribe_entries(
            ("date_range", start, end, "kind_asc"), DAY_RANGE_WHERE, (start, end), "kind_asc"
        )

    async def get_categories(self) -> Subscription:
        return await self.subscriptions.open(("categories",), self.fetch_categories)
