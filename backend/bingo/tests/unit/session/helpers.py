from bingo.messaging.types import JoinRoomMessage, SelectCardsMessage
from bingo.session.coordinator import RoomCoordinator
from bingo.tests.mocks import MockConnection


async def join(
    room: RoomCoordinator,
    name: str,
    *,
    persistent_id: str | None = None,
    connection: MockConnection | None = None,
) -> MockConnection:
    """Connect a fresh connection and join it under ``name``."""
    connection = connection or MockConnection(room_id=room.room_id)
    await room.connect(connection)
    await room.handle_command(connection, JoinRoomMessage(player_name=name, persistent_id=persistent_id))
    return connection


async def select_first_cards(room: RoomCoordinator, connection: MockConnection, count: int = 1) -> list[str]:
    player = room.state.players[connection.connection_id]
    card_ids = [card.id for card in player.cards[:count]]
    await room.handle_command(connection, SelectCardsMessage(card_ids=card_ids))
    return card_ids


def clear_all(*connections: MockConnection) -> None:
    """Drop message history for clean assertions."""
    for connection in connections:
        connection.clear()
