"""
Event Stream Client

Owns one live Socket.IO channel for a deployment and turns its wire events
into typed StreamEvents. Reconnection is handled here (fixed delay, bounded
attempts) instead of by python-socketio so that giving up is reported to the
caller as a StreamExhaustedEvent.
"""

import asyncio
import functools
import logging
from typing import Any, Callable, Dict, Optional

import socketio
from socketio import exceptions as socketio_exceptions

from flowdeploy.constants import (
    STREAM_RECONNECTION_ATTEMPTS,
    STREAM_RECONNECTION_DELAY,
    STREAM_TRANSPORTS,
)
from flowdeploy.models.events import (
    ConnectErrorEvent,
    DisconnectEvent,
    StreamEvent,
    StreamExhaustedEvent,
    decode_event,
)

logger = logging.getLogger(__name__)

EventCallback = Callable[[StreamEvent], None]
ClientFactory = Callable[[], Any]

# Server-to-client events forwarded to the caller
WIRE_EVENTS = ("log", "status", "deployment_complete", "deployment_failed")


def default_client_factory() -> socketio.AsyncClient:
    """Socket.IO client with built-in reconnection turned off."""
    return socketio.AsyncClient(reconnection=False, logger=False, engineio_logger=False)


class EventStreamClient:
    """
    Single authenticated real-time channel.

    - connect() closes any open channel first, so at most one is live
    - events reach on_event in transport order, undeduplicated
    - transport drops are retried automatically until a terminal event arrives
    - disconnect() is idempotent
    """

    def __init__(
        self,
        server_url: str,
        reconnection_attempts: int = STREAM_RECONNECTION_ATTEMPTS,
        reconnection_delay: float = STREAM_RECONNECTION_DELAY,
        client_factory: Optional[ClientFactory] = None,
    ):
        self.server_url = server_url
        self.reconnection_attempts = reconnection_attempts
        self.reconnection_delay = reconnection_delay
        self._client_factory = client_factory or default_client_factory

        self.deployment_id: Optional[str] = None
        self._sio: Optional[Any] = None
        self._auth: Optional[Dict[str, str]] = None
        self._on_event: Optional[EventCallback] = None
        self._closing = False
        self._terminal_received = False
        self._reconnect_task: Optional[asyncio.Task] = None

    @property
    def is_open(self) -> bool:
        """A channel is held (connected or reconnecting)."""
        return self._sio is not None

    @property
    def is_reconnecting(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    async def connect(self, token: str, deployment_id: str, on_event: EventCallback) -> bool:
        """
        Open the channel for a deployment.

        Args:
            token: Bearer token used for channel auth
            deployment_id: Deployment the channel is scoped to
            on_event: Synchronous callback receiving every StreamEvent

        Returns:
            True if the first connection attempt succeeded. On failure the
            reconnection policy takes over and the outcome arrives as events.
        """
        if self._sio is not None or self._reconnect_task is not None:
            await self.disconnect()

        self._closing = False
        self._terminal_received = False
        self._on_event = on_event
        self.deployment_id = deployment_id
        self._auth = {"token": token, "deployment_id": deployment_id}

        sio = self._client_factory()
        self._register_handlers(sio)
        self._sio = sio

        if await self._open(sio):
            return True

        self._schedule_reconnect()
        return False

    async def disconnect(self) -> None:
        """Close the channel and stop reconnecting. Safe to call repeatedly."""
        self._closing = True

        task = self._reconnect_task
        self._reconnect_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

        sio = self._sio
        self._sio = None
        self._on_event = None
        if sio is None:
            return

        try:
            await sio.disconnect()
        except socketio_exceptions.SocketIOError as e:
            logger.warning("Error while closing stream for %s: %s", self.deployment_id, e)
        logger.debug("Stream closed for deployment %s", self.deployment_id)

    def _register_handlers(self, sio: Any) -> None:
        sio.on("connect", handler=self._handle_connect)
        sio.on("connect_error", handler=self._handle_connect_error)
        sio.on("disconnect", handler=self._handle_disconnect)
        for name in WIRE_EVENTS:
            sio.on(name, handler=functools.partial(self._dispatch, name))

    async def _open(self, sio: Any) -> bool:
        try:
            await sio.connect(
                self.server_url,
                auth=self._auth,
                transports=STREAM_TRANSPORTS,
            )
        except socketio_exceptions.ConnectionError as e:
            logger.warning("Stream connection to %s failed: %s", self.server_url, e)
            self._emit(ConnectErrorEvent(reason=str(e)))
            return False
        return True

    def _emit(self, event: StreamEvent) -> None:
        if self._on_event is not None:
            self._on_event(event)

    def _dispatch(self, name: str, *args: Any) -> None:
        """Decode one wire event and hand it to the caller."""
        data = args[0] if args else None
        event = decode_event(name, data)
        if event.is_terminal:
            self._terminal_received = True
        self._emit(event)

    def _handle_connect(self) -> None:
        logger.info("Connected to deployment stream %s", self.deployment_id)

    def _handle_connect_error(self, *args: Any) -> None:
        reason = args[0] if args else ""
        logger.warning("Stream connect error: %s", reason)
        self._emit(ConnectErrorEvent(reason=str(reason)))

    def _handle_disconnect(self, *args: Any) -> None:
        reason = str(args[0]) if args else ""
        if self._closing or self._terminal_received:
            logger.debug("Stream disconnected (%s), not reconnecting", reason or "closed")
            return

        logger.warning("Stream dropped: %s", reason or "transport closed")
        self._emit(DisconnectEvent(reason=reason))
        self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self.is_reconnecting or self._closing or self._sio is None:
            return
        self._reconnect_task = asyncio.get_running_loop().create_task(
            self._reconnect(self._sio)
        )

    async def _reconnect(self, sio: Any) -> None:
        """Retry with a fixed delay; report exhaustion as an event."""
        for attempt in range(1, self.reconnection_attempts + 1):
            await asyncio.sleep(self.reconnection_delay)
            if self._closing or self._sio is not sio:
                return

            logger.info(
                "Reconnecting to deployment stream (attempt %d/%d)",
                attempt,
                self.reconnection_attempts,
            )
            if await self._open(sio):
                self._reconnect_task = None
                return

        self._reconnect_task = None
        if self._closing or self._sio is not sio:
            return

        logger.error(
            "Giving up on deployment stream after %d attempts", self.reconnection_attempts
        )
        self._emit(StreamExhaustedEvent(attempts=self.reconnection_attempts))
