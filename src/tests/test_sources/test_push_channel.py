"""
Tests for PushChannelClient - inbound WebSocket frames for the effect flow
"""

from unittest.mock import AsyncMock, patch

import pytest

from sources.push_channel import ChannelMetrics, PushChannelClient


class FakeConnection:
    """Stands in for a websockets connection: yields frames, then closes."""

    def __init__(self, frames=()):
        self.frames = list(frames)
        self.close = AsyncMock()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for frame in self.frames:
            yield frame


def stop_after(client, attempts):
    """Backoff replacement that stops the loop after `attempts` backoffs."""
    calls = []

    async def backoff():
        calls.append(client._current_reconnect_delay)
        if len(calls) >= attempts:
            client._intentional_close = True

    return backoff, calls


# =============================================================================
# Metrics and configuration
# =============================================================================


class TestChannelMetrics:
    def test_initial_metrics_are_zeroed(self):
        metrics = ChannelMetrics()

        assert metrics.connected is False
        assert metrics.messages_received == 0
        assert metrics.last_message_time is None
        assert metrics.connection_attempts == 0
        assert metrics.listener_errors == 0

    def test_to_dict_returns_all_fields(self):
        metrics = ChannelMetrics(connected=True, messages_received=3, connection_attempts=2)

        assert metrics.to_dict() == {
            "connected": True,
            "messages_received": 3,
            "last_message_time": None,
            "connection_attempts": 2,
            "last_connected_time": None,
            "listener_errors": 0,
        }


class TestPushChannelConfig:
    def test_defaults(self):
        client = PushChannelClient()

        assert client.url == "ws://localhost:8000/ws"
        assert client.reconnect_delay == 1.0
        assert client.max_reconnect_delay == 30.0
        assert client.reconnect_multiplier == 1.5
        assert client.is_connected() is False


# =============================================================================
# Listeners
# =============================================================================


class TestListeners:
    def test_frames_reach_listeners_untouched(self, bus):
        client = PushChannelClient(bus=bus)
        received = []
        client.on(received.append)

        client._handle_frame('{"event": "stealSet"}')
        client._handle_frame(b"raw bytes")

        assert received == ['{"event": "stealSet"}', b"raw bytes"]
        assert client.get_metrics().messages_received == 2
        assert client.get_metrics().last_message_time is not None

    def test_unsubscribe(self, bus):
        client = PushChannelClient(bus=bus)
        received = []
        unsubscribe = client.on(received.append)

        unsubscribe()
        client._handle_frame("frame")

        assert received == []

    def test_same_listener_registered_once(self, bus):
        client = PushChannelClient(bus=bus)
        received = []
        client.on(received.append)
        client.on(received.append)

        client._handle_frame("frame")

        assert received == ["frame"]

    def test_listener_error_does_not_break_other_listeners(self, bus):
        client = PushChannelClient(bus=bus)
        received = []

        def broken(frame):
            raise ValueError("boom")

        client.on(broken)
        client.on(received.append)

        client._handle_frame("frame")

        assert received == ["frame"]
        assert client.get_metrics().listener_errors == 1


# =============================================================================
# Connection lifecycle
# =============================================================================


class TestConnectionEvents:
    def test_connected_event(self, bus, published):
        client = PushChannelClient("ws://game.test/ws/1", bus=bus)

        client._on_connected()

        assert client.is_connected()
        assert published == [
            ("push.connection", {"connected": True, "url": "ws://game.test/ws/1"})
        ]

    def test_disconnected_event(self, bus, published):
        client = PushChannelClient(bus=bus)
        client._on_connected()

        client._on_disconnected(code=1006, reason="gone")

        assert not client.is_connected()
        assert published[-1] == (
            "push.connection",
            {"connected": False, "code": 1006, "reason": "gone"},
        )

    def test_connect_resets_backoff(self, bus):
        client = PushChannelClient(bus=bus)
        client._current_reconnect_delay = 20.0

        client._on_connected()

        assert client._current_reconnect_delay == client.reconnect_delay


class TestConnect:
    @pytest.mark.asyncio
    async def test_frames_forwarded_until_stopped(self, bus, published):
        client = PushChannelClient(bus=bus)
        received = []
        client.on(received.append)
        client._backoff, _ = stop_after(client, 1)

        connection = FakeConnection(['{"event": "stealSet"}', '{"event": "hideSecret"}'])
        with patch("websockets.connect", return_value=connection):
            await client.connect()

        assert received == ['{"event": "stealSet"}', '{"event": "hideSecret"}']
        metrics = client.get_metrics()
        assert metrics.connection_attempts == 1
        assert metrics.messages_received == 2
        assert metrics.connected is False
        assert [data["connected"] for name, data in published] == [True, False]

    @pytest.mark.asyncio
    async def test_failed_connection_retries(self, bus, published):
        client = PushChannelClient(bus=bus)
        client._backoff, backoffs = stop_after(client, 2)

        with patch("websockets.connect", side_effect=OSError("refused")):
            await client.connect()

        assert client.get_metrics().connection_attempts == 2
        assert len(backoffs) == 2
        assert published[0] == (
            "push.connection",
            {"connected": False, "code": 1006, "reason": "refused"},
        )

    @pytest.mark.asyncio
    async def test_disconnect_closes_connection(self, bus):
        client = PushChannelClient(bus=bus)
        connection = FakeConnection()
        client._ws = connection
        client._is_connected = True

        await client.disconnect()

        connection.close.assert_awaited_once()
        assert client._ws is None
        assert client.is_connected() is False

    @pytest.mark.asyncio
    async def test_reconnect_uses_exponential_backoff(self, bus):
        client = PushChannelClient(
            bus=bus, reconnect_delay=1.0, max_reconnect_delay=3.0, reconnect_multiplier=2.0
        )

        with patch("sources.push_channel.asyncio.sleep", new=AsyncMock()) as sleep:
            for _ in range(4):
                await client._backoff()

        assert [call.args[0] for call in sleep.await_args_list] == [1.0, 2.0, 3.0, 3.0]
