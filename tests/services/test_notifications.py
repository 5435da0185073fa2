from unittest.mock import AsyncMock

import pytest

from chatline.services import notifications as events
from chatline.services.notifications import ConnectionRegistry


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.mark.asyncio
async def test_push_to_offline_user_is_a_no_op(registry):
    delivered = await registry.push(42, events.NEW_MESSAGE, {"id": 1})
    assert delivered == 0


@pytest.mark.asyncio
async def test_push_wraps_payload_in_envelope(registry):
    connection = AsyncMock()
    registry.register(7, connection)

    delivered = await registry.push(7, events.NEW_CALL_LOG, {"id": 3})

    assert delivered == 1
    connection.send_json.assert_awaited_once_with({"event": "newCallLog", "data": {"id": 3}})


@pytest.mark.asyncio
async def test_push_reaches_every_connection_of_user(registry):
    phone, laptop = AsyncMock(), AsyncMock()
    registry.register(7, phone)
    registry.register(7, laptop)

    assert await registry.push(7, events.PRESENCE, {}) == 2
    phone.send_json.assert_awaited_once()
    laptop.send_json.assert_awaited_once()


@pytest.mark.asyncio
async def test_failed_send_drops_only_that_connection(registry):
    broken = AsyncMock()
    broken.send_json.side_effect = ConnectionError("gone")
    healthy = AsyncMock()
    registry.register(5, broken)
    registry.register(5, healthy)

    delivered = await registry.push(5, events.NEW_MESSAGE, {"id": 9})

    assert delivered == 1
    assert registry.is_online(5)
    await registry.push(5, events.NEW_MESSAGE, {"id": 10})
    assert broken.send_json.await_count == 1
    assert healthy.send_json.await_count == 2


@pytest.mark.asyncio
async def test_push_many_deduplicates_recipients(registry):
    first, second = AsyncMock(), AsyncMock()
    registry.register(1, first)
    registry.register(2, second)

    total = await registry.push_many([1, 2, 1, 3], events.MESSAGE_UPDATED, {"id": 4})

    assert total == 2
    first.send_json.assert_awaited_once()


def test_register_is_idempotent_and_unregister_reports_last(registry):
    connection = object()
    registry.register(3, connection)
    registry.register(3, connection)
    other = object()
    registry.register(3, other)

    assert registry.unregister(3, connection) is False
    assert registry.unregister(3, other) is True
    assert not registry.is_online(3)


def test_unregister_unknown_user(registry):
    assert registry.unregister(99, object()) is True
    assert not registry.is_online(99)
