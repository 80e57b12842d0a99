"""
Push Channel Client - async WebSocket client for server effect notifications.

Provides:
- Async WebSocket connection with exponential backoff reconnection
- Raw frame fan-out to listeners (parsing is the listener's job)
- Connection metrics

Frames are forwarded untouched: EffectManager.handle_message parses them and
decides what is malformed.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

import websockets

from services.event_bus import EventBus, Events, event_bus

logger = logging.getLogger(__name__)

Listener = Callable[[str | bytes], None]


@dataclass
class ChannelMetrics:
    """Connection metrics for PushChannelClient."""

    connected: bool = False
    messages_received: int = 0
    last_message_time: int | None = None
    connection_attempts: int = 0
    last_connected_time: int | None = None
    listener_errors: int = 0

    def to_dict(self) -> dict:
        """Serialize metrics to dict."""
        return {
            "connected": self.connected,
            "messages_received": self.messages_received,
            "last_message_time": self.last_message_time,
            "connection_attempts": self.connection_attempts,
            "last_connected_time": self.last_connected_time,
            "listener_errors": self.listener_errors,
        }


class PushChannelClient:
    """
    Inbound half of the effect flow.

    Usage:
        channel = PushChannelClient("ws://localhost:8000/ws/42/1")
        channel.on(manager.handle_message)
        await channel.connect()      # runs until disconnect()
    """

    def __init__(
        self,
        url: str = "ws://localhost:8000/ws",
        reconnect_delay: float = 1.0,
        max_reconnect_delay: float = 30.0,
        reconnect_multiplier: float = 1.5,
        bus: EventBus | None = None,
    ):
        """
        Args:
            url: WebSocket URL of the game push channel
            reconnect_delay: Initial reconnect delay in seconds
            max_reconnect_delay: Maximum reconnect delay in seconds
            reconnect_multiplier: Backoff multiplier for reconnection
            bus: Event bus for connection events (global bus by default)
        """
        self.url = url
        self.reconnect_delay = reconnect_delay
        self.max_reconnect_delay = max_reconnect_delay
        self.reconnect_multiplier = reconnect_multiplier
        self._bus = bus if bus is not None else event_bus

        self._ws = None
        self._is_connected = False
        self._intentional_close = False
        self._current_reconnect_delay = reconnect_delay

        self._listeners: list[Listener] = []
        self._metrics = ChannelMetrics()

    def is_connected(self) -> bool:
        return self._is_connected

    def get_metrics(self) -> ChannelMetrics:
        return self._metrics

    def on(self, listener: Listener) -> Callable[[], None]:
        """
        Register a frame listener.

        Returns:
            Unsubscribe function
        """
        if listener not in self._listeners:
            self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _handle_frame(self, frame: str | bytes) -> None:
        """Forward one frame to every listener."""
        self._metrics.messages_received += 1
        self._metrics.last_message_time = int(time.time() * 1000)

        for listener in list(self._listeners):
            try:
                listener(frame)
            except Exception as e:
                self._metrics.listener_errors += 1
                logger.error(f"[PushChannel] Error in listener: {e}", exc_info=True)

    def _on_connected(self) -> None:
        self._is_connected = True
        self._current_reconnect_delay = self.reconnect_delay
        self._metrics.connected = True
        self._metrics.last_connected_time = int(time.time() * 1000)

        logger.info(f"[PushChannel] Connected to {self.url}")
        self._bus.publish(Events.PUSH_CONNECTION, {"connected": True, "url": self.url})

    def _on_disconnected(self, code: int = 1000, reason: str = "") -> None:
        was_connected = self._is_connected
        self._is_connected = False
        self._metrics.connected = False

        if was_connected:
            logger.info(f"[PushChannel] Disconnected (code: {code})")
        self._bus.publish(
            Events.PUSH_CONNECTION, {"connected": False, "code": code, "reason": reason}
        )

    async def connect(self) -> None:
        """
        Connect and forward frames until disconnect() is called.

        Reconnects with exponential backoff after a failed attempt or a
        dropped connection.
        """
        self._intentional_close = False

        while not self._intentional_close:
            self._metrics.connection_attempts += 1
            logger.info(f"[PushChannel] Connecting to {self.url}...")

            try:
                async with websockets.connect(self.url) as ws:
                    self._ws = ws
                    self._on_connected()
                    try:
                        async for frame in ws:
                            self._handle_frame(frame)
                    finally:
                        self._ws = None
                        self._on_disconnected()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if self._intentional_close:
                    break
                logger.error(f"[PushChannel] Connection failed: {e}")
                self._on_disconnected(code=1006, reason=str(e))

            if not self._intentional_close:
                await self._backoff()

    async def _backoff(self) -> None:
        """Sleep before the next attempt, growing the delay up to the cap."""
        delay = self._current_reconnect_delay
        logger.info(f"[PushChannel] Reconnecting in {delay}s...")
        await asyncio.sleep(delay)
        self._current_reconnect_delay = min(
            self._current_reconnect_delay * self.reconnect_multiplier,
            self.max_reconnect_delay,
        )

    async def disconnect(self) -> None:
        """Close the connection and stop reconnecting."""
        self._intentional_close = True

        if self._ws:
            await self._ws.close()
            self._ws = None

        self._is_connected = False
        self._metrics.connected = False
