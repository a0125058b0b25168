"""Connection registry mapping user ids to their live connections.

One instance is created at startup and injected wherever delivery happens;
the WebSocket endpoint registers a connection on accept and deregisters it on
close.
"""

from __future__ import annotations

from typing import Any, Protocol


class Connection(Protocol):
    """Anything that can push a JSON payload to a client."""

    async def send_json(self, data: Any) -> None: ...


class ConnectionRegistry:
    """Track which users are connected and through which sockets.

    A user may hold several connections (tabs, devices).  Connections are
    compared by identity.
    """

    def __init__(self) -> None:
        self._connections: dict[str, list[Connection]] = {}

    def register(self, user_id: str, connection: Connection) -> bool:
        """Add *connection* for *user_id*.

        Returns:
            True if this is the user's first live connection.
        """
        conns = self._connections.setdefault(user_id, [])
        if any(c is connection for c in conns):
            return False
        conns.append(connection)
        return len(conns) == 1

    def deregister(self, user_id: str, connection: Connection) -> bool:
        """Remove *connection* for *user_id*.

        Returns:
            True if the user has no live connections left.
        """
        conns = self._connections.get(user_id)
        if not conns:
            return False
        remaining = [c for c in conns if c is not connection]
        if remaining:
            self._connections[user_id] = remaining
            return False
        del self._connections[user_id]
        return True

    def connections_for(self, user_id: str) -> list[Connection]:
        return list(self._connections.get(user_id, ()))

    def is_online(self, user_id: str) -> bool:
        return user_id in self._connections

    def active_users(self) -> list[str]:
        return sorted(self._connections)

    def __len__(self) -> int:
        return sum(len(conns) for conns in self._connections.values())
