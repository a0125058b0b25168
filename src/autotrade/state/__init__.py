"""Marketplace persistence package.

Provides the SQLite-backed document store with versioned writes, the schema
initialisers and the idempotency-key ledger.
"""

from autotrade.state.idempotency import IdempotencyLedger
from autotrade.state.schema import (
    close_marketplace_db,
    init_document_tables,
    init_idempotency_table,
    init_marketplace_db,
)
from autotrade.state.store import DocumentStore

__all__ = [
    "DocumentStore",
    "IdempotencyLedger",
    "close_marketplace_db",
    "init_document_tables",
    "init_idempotency_table",
    "init_marketplace_db",
]
