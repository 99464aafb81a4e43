"""Typed domain exceptions for rejected room commands.

Every user-facing rejection is a SessionError subclass carrying the error
code sent to the client. RoomCoordinator catches them at the command
boundary and converts them into a single error notification to the
sender; state is never modified by a rejected command.
"""

from bingo.logic.enums import ErrorCode


class SessionError(Exception):
    """Base exception for recoverable command rejections."""

    code: ErrorCode = ErrorCode.ACTION_FAILED

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ProtocolError(SessionError):
    """Command could not be parsed or has an unknown type."""

    code = ErrorCode.INVALID_MESSAGE


class AuthorizationError(SessionError):
    """A non-host sent a host-only command."""

    code = ErrorCode.NOT_AUTHORIZED


class PhaseError(SessionError):
    """Command is not valid in the current game phase."""

    code = ErrorCode.INVALID_PHASE


class ResourceExhaustedError(SessionError):
    """The draw order has no numbers left."""

    code = ErrorCode.NO_NUMBERS_REMAINING


class NotJoinedError(SessionError):
    """The sending connection has not joined the room yet."""

    code = ErrorCode.NOT_JOINED


class PlayerNotFoundError(SessionError):
    code = ErrorCode.PLAYER_NOT_FOUND


class InvalidActionError(SessionError):
    """Command is well-formed but cannot be applied (e.g. a host kicking themselves)."""


class CardGenerationError(RuntimeError):
    """Card pool could not be filled with unique cards.

    Invariant violation, never converted into a client error.
    """
