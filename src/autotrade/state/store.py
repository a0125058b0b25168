"""SQLite-backed document store with compare-and-swap writes.

Follows the audit store pattern: accepts a sqlite3.Connection, uses
parameterized queries for every value, and commits synchronously after
writes -- unless the write happens inside :meth:`DocumentStore.transaction`,
in which case the outermost block commits or rolls back as a unit.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, TypeVar

from autotrade.clock import Clock, utcnow
from autotrade.domain.errors import ConcurrentModificationError, ConflictError, NotFoundError
from autotrade.domain.models import Document, Listing, Message, Review, Trade, Vehicle

D = TypeVar("D", bound=Document)

_COLLECTIONS: dict[type[Document], str] = {
    Vehicle: "vehicles",
    Listing: "listings",
    Trade: "trades",
    Message: "messages",
    Review: "reviews",
}


class DocumentStore:
    """Persist and retrieve marketplace documents.

    Every document carries a ``version``.  :meth:`insert` sets it to 1 and
    :meth:`save` only succeeds when the stored version still equals the one
    the caller loaded, bumping it by one.  A lost race raises
    :class:`ConcurrentModificationError` and leaves the stored copy untouched.
    """

    def __init__(self, conn: sqlite3.Connection, clock: Clock = utcnow) -> None:
        """Initialize with an open database connection.

        Args:
            conn: An open sqlite3.Connection whose database already has the
                  collection tables (see ``init_marketplace_db``).
            clock: Source of the timestamps stamped on writes.
        """
        self._conn = conn
        self._clock = clock
        self._depth = 0

    @property
    def connection(self) -> sqlite3.Connection:
        return self._conn

    @staticmethod
    def collection_for(model: type[Document]) -> str:
        """Return the table name backing *model*."""
        try:
            return _COLLECTIONS[model]
        except KeyError:
            raise TypeError(f"{model.__name__} is not a stored document type") from None

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Group writes so they commit together or not at all.

        Nested blocks join the outermost one.
        """
        self._depth += 1
        try:
            yield
        except BaseException:
            self._depth -= 1
            if self._depth == 0:
                self._conn.rollback()
            raise
        self._depth -= 1
        if self._depth == 0:
            self._conn.commit()

    def _commit(self) -> None:
        if self._depth == 0:
            self._conn.commit()

    def execute(self, sql: str, params: tuple[Any, ...] | list[Any] = ()) -> sqlite3.Cursor:
        """Run a raw statement, honouring any open transaction."""
        cursor = self._conn.execute(sql, params)
        if not sql.lstrip().upper().startswith("SELECT"):
            self._commit()
        return cursor

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def get(self, model: type[D], doc_id: str) -> D | None:
        """Load a document by id, or ``None`` if it does not exist."""
        table = self.collection_for(model)
        row = self._conn.execute(
            f"SELECT body FROM {table} WHERE id = ?",
            (doc_id,),
        ).fetchone()
        if row is None:
            return None
        return model.model_validate_json(row[0])

    def require(self, model: type[D], doc_id: str) -> D:
        """Load a document by id.

        Raises:
            NotFoundError: If no such document exists.
        """
        doc = self.get(model, doc_id)
        if doc is None:
            raise NotFoundError(model.__name__.lower(), doc_id)
        return doc

    def find(self, model: type[D], **filters: Any) -> list[D]:
        """Return documents whose top-level body fields equal *filters*.

        Results come back in insertion order.  A ``None`` filter value
        matches missing or null fields.
        """
        table = self.collection_for(model)
        conditions: list[str] = []
        params: list[Any] = []
        for field, value in filters.items():
            if value is None:
                conditions.append(f"json_extract(body, '$.{field}') IS NULL")
            else:
                conditions.append(f"json_extract(body, '$.{field}') = ?")
                params.append(value)

        where_clause = ""
        if conditions:
            where_clause = "WHERE " + " AND ".join(conditions)

        cursor = self._conn.execute(
            f"SELECT body FROM {table} {where_clause} ORDER BY rowid",
            params,
        )
        return [model.model_validate_json(row[0]) for row in cursor.fetchall()]

    def get_many(self, model: type[D], doc_ids: list[str]) -> dict[str, D]:
        """Load several documents at once, keyed by id; missing ids are absent."""
        found: dict[str, D] = {}
        for doc_id in doc_ids:
            doc = self.get(model, doc_id)
            if doc is not None:
                found[doc_id] = doc
        return found

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def insert(self, doc: D) -> D:
        """Store a new document, stamping ``version=1`` and timestamps.

        Raises:
            ConflictError: If a document with the same id already exists.
        """
        table = self.collection_for(type(doc))
        now = self._clock()
        doc.version = 1
        doc.created_at = now
        doc.updated_at = now
        try:
            self._conn.execute(
                f"INSERT INTO {table} (id, version, body, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?)",
                (doc.id, doc.version, doc.model_dump_json(), now.isoformat(), now.isoformat()),
            )
        except sqlite3.IntegrityError:
            doc.version = 0
            raise ConflictError(f"{table.rstrip('s')} '{doc.id}' already exists") from None
        self._commit()
        return doc

    def save(self, doc: D) -> D:
        """Write back a loaded document if nobody else changed it meanwhile.

        Raises:
            ConcurrentModificationError: If the stored version differs from
                ``doc.version``.
        """
        table = self.collection_for(type(doc))
        expected = doc.version
        previous_updated_at = doc.updated_at
        now = self._clock()
        doc.version = expected + 1
        doc.updated_at = now

        cursor = self._conn.execute(
            f"UPDATE {table} SET version = ?, body = ?, updated_at = ? "
            "WHERE id = ? AND version = ?",
            (doc.version, doc.model_dump_json(), now.isoformat(), doc.id, expected),
        )
        if cursor.rowcount == 0:
            doc.version = expected
            doc.updated_at = previous_updated_at
            raise ConcurrentModificationError(table, doc.id)
        self._commit()
        return doc

    def delete(self, model: type[Document], doc_id: str) -> bool:
        """Delete a document by id.

        Returns:
            True if a row was removed.
        """
        table = self.collection_for(model)
        cursor = self._conn.execute(f"DELETE FROM {table} WHERE id = ?", (doc_id,))
        self._commit()
        return cursor.rowcount > 0
