import pytest

from bingo.session.coordinator import RoomCoordinator


@pytest.fixture
async def room(rng):
    coordinator = RoomCoordinator("test-room", rng=rng)
    yield coordinator
    await coordinator.shutdown()
