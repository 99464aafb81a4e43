"""Shared broadcast utility for sending messages to a room's connections."""

import contextlib
from collections.abc import Mapping
from typing import Any

from bingo.messaging.protocol import ConnectionProtocol


async def send_safely(connection: ConnectionProtocol, message: dict[str, Any]) -> None:
    """Send to one connection, ignoring a peer that has already gone away."""
    with contextlib.suppress(RuntimeError, OSError, ConnectionError):
        await connection.send_message(message)


async def broadcast_to_connections(
    connections: Mapping[str, ConnectionProtocol],
    message: dict[str, Any],
    exclude_connection_id: str | None = None,
) -> None:
    """Broadcast a message to every connection, skipping one if excluded.

    Snapshot the mapping via list() so a concurrent close cannot mutate it
    while we yield on send_message.
    """
    for connection_id, connection in list(connections.items()):
        if connection_id != exclude_connection_id:
            await send_safely(connection, message)
