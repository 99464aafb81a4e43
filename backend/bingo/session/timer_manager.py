"""Own the two timers of a room: the auto-call ticker and the timeout countdown."""

from collections.abc import Awaitable, Callable

import structlog

from bingo.logic.timer import CountdownTimer, RepeatingTimer

logger = structlog.get_logger()


class RoomTimers:
    """Timer lifecycle for one room.

    At most one ticker and one countdown are active at any time; starting
    either replaces the previous one of the same kind. This class does not
    inspect game state -- the coordinator decides when timers run.
    """

    def __init__(self, room_id: str) -> None:
        self._room_id = room_id
        self._ticker = RepeatingTimer()
        self._countdown = CountdownTimer()
        self._auto_call_interval: float | None = None

    @property
    def auto_call_active(self) -> bool:
        return self._ticker.is_active

    @property
    def auto_call_interval(self) -> float | None:
        """Interval in seconds of the running ticker, or None when stopped."""
        return self._auto_call_interval if self._ticker.is_active else None

    @property
    def countdown_active(self) -> bool:
        return self._countdown.is_active

    def start_auto_call(self, interval_ms: int, on_tick: Callable[[], Awaitable[bool]]) -> None:
        self._auto_call_interval = interval_ms / 1000
        self._ticker.start(self._auto_call_interval, on_tick)
        logger.debug("auto-call started", room_id=self._room_id, interval_ms=interval_ms)

    def stop_auto_call(self) -> None:
        if self._ticker.is_active:
            logger.debug("auto-call stopped", room_id=self._room_id)
        self._ticker.cancel()
        self._auto_call_interval = None

    def start_countdown(self, seconds: float, on_expire: Callable[[], Awaitable[None]]) -> None:
        self._countdown.start(seconds, on_expire)

    def stop_countdown(self) -> None:
        self._countdown.cancel()

    def cancel_all(self) -> None:
        """Cancel both timers."""
        self.stop_auto_call()
        self.stop_countdown()
