"""SQLite schema for the marketplace document store.

Each collection is a table of JSON bodies keyed by id, with the optimistic
concurrency ``version`` and timestamps lifted into real columns.  Frequently
filtered body fields get expression indexes over ``json_extract``.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

COLLECTIONS: tuple[str, ...] = ("vehicles", "listings", "trades", "messages", "reviews")

_INDEXES: dict[str, tuple[str, ...]] = {
    "vehicles": ("owner_id",),
    "listings": ("seller_id", "vehicle_id", "is_active"),
    "trades": ("listing_id", "offerer_id", "receiver_id", "status"),
    "messages": ("sender_id", "receiver_id"),
    "reviews": ("reviewer_id", "reviewee_id"),
}


def init_document_tables(conn: sqlite3.Connection) -> None:
    """Create one table per collection plus its expression indexes.

    Args:
        conn: An open sqlite3.Connection.
    """
    for name in COLLECTIONS:
        conn.execute(f"""
            CREATE TABLE IF NOT EXISTS {name} (
                id TEXT PRIMARY KEY,
                version INTEGER NOT NULL,
                body TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        for field in _INDEXES[name]:
            conn.execute(
                f"CREATE INDEX IF NOT EXISTS idx_{name}_{field} "
                f"ON {name} (json_extract(body, '$.{field}'))"
            )

    conn.commit()


def init_idempotency_table(conn: sqlite3.Connection) -> None:
    """Create the idempotency_keys table if it does not already exist.

    A key is unique per actor and operation, so two users reusing the same
    client-generated key never collide.  ``target`` is the trade (or, for a
    create, the listing) the keyed request addressed.

    Args:
        conn: An open sqlite3.Connection.
    """
    conn.execute("""
        CREATE TABLE IF NOT EXISTS idempotency_keys (
            key TEXT NOT NULL,
            actor_id TEXT NOT NULL,
            operation TEXT NOT NULL,
            target TEXT NOT NULL,
            trade_id TEXT NOT NULL,
            created_at TEXT NOT NULL,
            PRIMARY KEY (key, actor_id, operation)
        )
    """)

    conn.execute(
        "CREATE INDEX IF NOT EXISTS idx_idempotency_created ON idempotency_keys (created_at)"
    )

    conn.commit()


def init_marketplace_db(db_path: Path | str) -> sqlite3.Connection:
    """Open (creating if needed) the marketplace database.

    Enables WAL mode and creates every table.  The connection may be used
    from the thread serving requests as well as the one that opened it.

    Args:
        db_path: Path to the SQLite database file, or ``":memory:"``.

    Returns:
        An open sqlite3.Connection.
    """
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.execute("PRAGMA journal_mode=WAL")
    init_document_tables(conn)
    init_idempotency_table(conn)
    return conn


def close_marketplace_db(conn: sqlite3.Connection) -> None:
    """Close the marketplace database connection.

    Args:
        conn: The database connection to close.
    """
    conn.close()
