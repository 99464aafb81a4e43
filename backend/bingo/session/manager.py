from __future__ import annotations

import asyncio
import contextlib
import random
import time
from typing import TYPE_CHECKING

import structlog

from bingo.logic.enums import ErrorCode
from bingo.messaging.types import ClientCommand, ErrorMessage
from bingo.session.coordinator import RoomCoordinator

if TYPE_CHECKING:
    from bingo.messaging.protocol import ConnectionProtocol

logger = structlog.get_logger()

_ROOM_REAPER_INTERVAL = 30  # seconds between reaper checks

CAPACITY_CLOSE_CODE = 4003


class SessionManager:
    """
    Registry of active rooms.

    A RoomCoordinator is created lazily on the first connection to a room.
    Rooms with no live connections are retained for ``room_ttl_seconds`` so
    players can reconnect, then torn down by the reaper.
    """

    def __init__(
        self,
        *,
        max_rooms: int = 100,
        room_ttl_seconds: int = 300,
        rng: random.Random | None = None,
    ) -> None:
        self._max_rooms = max_rooms
        self._room_ttl_seconds = room_ttl_seconds
        self._rng = rng
        self._rooms: dict[str, RoomCoordinator] = {}
        self._empty_since: dict[str, float] = {}  # room_id -> monotonic time the last connection left
        self._room_reaper_task: asyncio.Task[None] | None = None

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    @property
    def connection_count(self) -> int:
        return sum(room.connection_count for room in self._rooms.values())

    @property
    def max_rooms(self) -> int:
        return self._max_rooms

    def get_room(self, room_id: str) -> RoomCoordinator | None:
        return self._rooms.get(room_id)

    async def connect(self, connection: ConnectionProtocol) -> bool:
        """Attach a connection to its room, creating the room on first use.

        Returns False (after notifying and closing the connection) when a new
        room would exceed capacity.
        """
        room_id = connection.room_id
        room = self._rooms.get(room_id)
        if room is None:
            if len(self._rooms) >= self._max_rooms:
                logger.warning("server at capacity, rejecting room", room_id=room_id, max_rooms=self._max_rooms)
                with contextlib.suppress(RuntimeError, OSError, ConnectionError):
                    await connection.send_message(
                        ErrorMessage(code=ErrorCode.SERVER_AT_CAPACITY, message="Server at capacity").to_wire(),
                    )
                await connection.close(code=CAPACITY_CLOSE_CODE, reason="server_at_capacity")
                return False
            room = RoomCoordinator(room_id, rng=self._rng)
            self._rooms[room_id] = room
            logger.info("room created", room_id=room_id)

        self._empty_since.pop(room_id, None)
        await room.connect(connection)
        return True

    async def handle_command(self, connection: ConnectionProtocol, message: ClientCommand) -> None:
        room = self._rooms.get(connection.room_id)
        if room is None or not room.has_connection(connection.connection_id):
            logger.warning("command for unknown room", room_id=connection.room_id)
            return
        await room.handle_command(connection, message)

    async def disconnect(self, connection: ConnectionProtocol) -> None:
        room_id = connection.room_id
        room = self._rooms.get(room_id)
        if room is None:
            return
        await room.disconnect(connection)
        if room.connection_count > 0:
            return
        if self._room_ttl_seconds <= 0:
            await self._teardown_room(room_id)
        else:
            self._empty_since.setdefault(room_id, time.monotonic())

    async def _teardown_room(self, room_id: str) -> None:
        room = self._rooms.pop(room_id, None)
        self._empty_since.pop(room_id, None)
        if room is not None:
            await room.shutdown()
            logger.info("room torn down", room_id=room_id)

    # --- Room reaper ---

    def start_room_reaper(self) -> None:
        """Start the periodic room reaper task. Idempotent."""
        if self._room_ttl_seconds <= 0:
            return
        if self._room_reaper_task is not None and not self._room_reaper_task.done():
            return
        self._room_reaper_task = asyncio.create_task(self._room_reaper_loop())

    async def stop_room_reaper(self) -> None:
        if self._room_reaper_task is not None:
            self._room_reaper_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._room_reaper_task
            self._room_reaper_task = None

    async def _room_reaper_loop(self) -> None:
        """Periodically tear down rooms that stayed empty past the TTL."""
        while True:
            await asyncio.sleep(_ROOM_REAPER_INTERVAL)
            try:
                await self.reap_expired_rooms()
            except Exception:
                logger.exception("room reaper encountered an error")

    async def reap_expired_rooms(self, now: float | None = None) -> list[str]:
        """Tear down every room empty for longer than the TTL; returns their ids."""
        now = now if now is not None else time.monotonic()
        expired = [
            room_id
            for room_id, since in list(self._empty_since.items())
            if now - since >= self._room_ttl_seconds
        ]
        for room_id in expired:
            room = self._rooms.get(room_id)
            if room is not None and room.connection_count > 0:
                self._empty_since.pop(room_id, None)
                continue
            await self._teardown_room(room_id)
        return expired

    async def shutdown(self) -> None:
        """Stop the reaper and cancel every room's timers."""
        await self.stop_room_reaper()
        for room_id in list(self._rooms):
            await self._teardown_room(room_id)
