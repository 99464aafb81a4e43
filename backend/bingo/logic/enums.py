"""
String enum definitions for bingo room concepts.
"""

from enum import StrEnum


class GamePhase(StrEnum):
    """Session-wide state machine phase."""

    LOBBY = "lobby"
    PLAYING = "playing"
    PAUSED = "paused"
    TIMEOUT = "timeout"
    FINISHED = "finished"


class BingoColumn(StrEnum):
    """Column letter a called number belongs to."""

    B = "B"
    I = "I"  # noqa: E741
    N = "N"
    G = "G"
    O = "O"  # noqa: E741


class PatternType(StrEnum):
    PRESET = "preset"
    CUSTOM = "custom"


class ChatMessageType(StrEnum):
    TEXT = "text"
    REACTION = "reaction"


class QuickReaction(StrEnum):
    """Closed set of one-tap chat reactions."""

    GOOD_LUCK = "good_luck"
    SO_CLOSE = "so_close"
    ONE_MORE = "one_more"
    NICE = "nice"
    WOW = "wow"
    HAHA = "haha"
    NERVOUS = "nervous"
    LETS_GO = "lets_go"


class ErrorCode(StrEnum):
    """Machine-readable codes attached to error notifications."""

    INVALID_MESSAGE = "invalid_message"
    NOT_AUTHORIZED = "not_authorized"
    INVALID_PHASE = "invalid_phase"
    NO_NUMBERS_REMAINING = "no_numbers_remaining"
    NOT_JOINED = "not_joined"
    PLAYER_NOT_FOUND = "player_not_found"
    ACTION_FAILED = "action_failed"
    RATE_LIMITED = "rate_limited"
    SERVER_AT_CAPACITY = "server_at_capacity"
