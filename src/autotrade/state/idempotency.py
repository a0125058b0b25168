"""Server-side deduplication of client-supplied idempotency keys.

A mutating trade request may carry an ``Idempotency-Key``.  The first request
with a given key records what it addressed and which trade it touched;
repeats from the same actor for the same operation and target within the
window are answered from the current trade instead of being applied again.
Reusing a key for a different target is a conflict.
"""

from __future__ import annotations

from datetime import timedelta

import structlog

from autotrade.clock import Clock, utcnow
from autotrade.domain.errors import ConflictError
from autotrade.state.store import DocumentStore

logger = structlog.get_logger()


class IdempotencyLedger:
    """Record and look up idempotency keys in the ``idempotency_keys`` table.

    Writes go through the :class:`DocumentStore` so a key is only remembered
    when the operation it guards commits.
    """

    def __init__(
        self,
        store: DocumentStore,
        window_seconds: int = 600,
        clock: Clock = utcnow,
    ) -> None:
        self._store = store
        self._window = timedelta(seconds=window_seconds)
        self._clock = clock

    def lookup(self, key: str, actor_id: str, operation: str, target: str) -> str | None:
        """Return the trade id recorded for *key*, if still inside the window.

        Raises:
            ConflictError: The key was already used by this actor for the same
                operation on a different trade or listing.
        """
        cutoff = (self._clock() - self._window).isoformat()
        row = self._store.execute(
            "SELECT target, trade_id FROM idempotency_keys "
            "WHERE key = ? AND actor_id = ? AND operation = ? AND created_at >= ?",
            (key, actor_id, operation, cutoff),
        ).fetchone()
        if row is None:
            return None
        recorded_target, trade_id = row
        if recorded_target != target:
            logger.info(
                "idempotency_key_reused",
                operation=operation,
                actor_id=actor_id,
                target=target,
                recorded_target=recorded_target,
            )
            raise ConflictError("Idempotency key already used for a different request")
        logger.info("idempotent_replay", operation=operation, actor_id=actor_id, trade_id=trade_id)
        return trade_id

    def remember(self, key: str, actor_id: str, operation: str, target: str, trade_id: str) -> None:
        """Record that *key*, sent for *target*, produced a change to *trade_id*.

        An expired entry for the same key is replaced.
        """
        self._store.execute(
            "INSERT OR REPLACE INTO idempotency_keys "
            "(key, actor_id, operation, target, trade_id, created_at) VALUES (?, ?, ?, ?, ?, ?)",
            (key, actor_id, operation, target, trade_id, self._clock().isoformat()),
        )

    def prune(self) -> int:
        """Delete keys older than the window.

        Returns:
            The number of keys removed.
        """
        cutoff = (self._clock() - self._window).isoformat()
        cursor = self._store.execute(
            "DELETE FROM idempotency_keys WHERE created_at < ?",
            (cutoff,),
        )
        return cursor.rowcount
