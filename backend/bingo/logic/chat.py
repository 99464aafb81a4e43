"""Bounded room chat log."""

from bingo.logic.enums import ChatMessageType
from bingo.logic.settings import MAX_CHAT_MESSAGES
from bingo.logic.state import BingoGameState
from bingo.logic.types import ChatMessage
from bingo.logic.utils import new_id, now_ms


def add_chat_message(
    state: BingoGameState,
    player_id: str,
    player_name: str,
    content: str,
    message_type: ChatMessageType = ChatMessageType.TEXT,
    now: int | None = None,
) -> tuple[BingoGameState, ChatMessage]:
    """Append a message, evicting the oldest entries beyond the cap."""
    message = ChatMessage(
        id=new_id("msg_"),
        player_id=player_id,
        player_name=player_name,
        type=message_type,
        content=content,
        timestamp=now if now is not None else now_ms(),
    )
    messages = (*state.chat_messages, message)[-MAX_CHAT_MESSAGES:]
    return state.model_copy(update={"chat_messages": messages}), message
