from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from bingo.logic.enums import ErrorCode
from bingo.messaging.types import ErrorMessage, parse_client_message

if TYPE_CHECKING:
    from bingo.messaging.protocol import ConnectionProtocol
    from bingo.session.manager import SessionManager

logger = structlog.get_logger()

_UNKNOWN_TYPE_ERRORS = frozenset({"union_tag_invalid"})


def _describe_validation_error(error: ValidationError) -> str:
    """Map a parse failure onto the client-facing error text."""
    if any(item["type"] in _UNKNOWN_TYPE_ERRORS for item in error.errors()):
        return "Unknown message type"
    return "Invalid message format"


class MessageRouter:
    """
    Routes decoded frames to the session layer.

    Parsing and schema validation happen here, so the session layer only
    ever sees well-formed commands. This class contains no transport code
    and can be tested without real WebSocket connections.
    """

    def __init__(self, session_manager: SessionManager) -> None:
        self._session_manager = session_manager

    async def handle_message(
        self,
        connection: ConnectionProtocol,
        raw_message: dict[str, Any],
    ) -> None:
        try:
            message = parse_client_message(raw_message)
        except ValidationError as e:
            logger.warning("invalid message", connection_id=connection.connection_id, errors=e.error_count())
            await connection.send_message(
                ErrorMessage(code=ErrorCode.INVALID_MESSAGE, message=_describe_validation_error(e)).to_wire(),
            )
            return

        try:
            await self._session_manager.handle_command(connection, message)
        except (ValueError, KeyError, TypeError) as e:
            logger.exception("command failed", connection_id=connection.connection_id, command=message.type)
            await connection.send_message(
                ErrorMessage(code=ErrorCode.ACTION_FAILED, message=str(e)).to_wire(),
            )

    async def handle_connect(self, connection: ConnectionProtocol) -> bool:
        return await self._session_manager.connect(connection)

    async def handle_disconnect(self, connection: ConnectionProtocol) -> None:
        await self._session_manager.disconnect(connection)
