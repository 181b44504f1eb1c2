from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Dict, Optional

from grapevine.core.EventCorrelator import EventCorrelator
from grapevine.core.EventTypes import (
    PROTOCOL_VERSION,
    ConnectionState,
    EventType,
    Notification,
    inbound,
)
from grapevine.core.Notifier import Notifier
from grapevine.state import PlayerRegistry
from shared.config import ClientConfig
from shared.envelope import Envelope, GrapevineError, MalformedFrameError, create_envelope
from shared.log import get_logger

if TYPE_CHECKING:
    from grapevine.ws_client import GrapevineSocket

logger = get_logger(__name__)


class InvalidTransitionError(GrapevineError):
    """Raised when a lifecycle event arrives in a state that cannot accept it."""
    pass


class ConnectionController:
    """
    Handshake state machine for one connection.

        disconnected --socket connected--> connected --authenticate sent--> authenticating
        authenticating --authenticate acknowledged--> authenticated
        any --socket closed--> closed

    Each transition is driven by a transport event (`on_socket_connected`,
    `on_message`, `on_socket_closed`). A rejected or unanswered handshake
    leaves the controller in `authenticating`; the failure is only visible
    through `handshake` / `auth_error`.
    """

    def __init__(
        self,
        config: ClientConfig,
        transport: "GrapevineSocket",
        correlator: EventCorrelator,
        players: PlayerRegistry,
        notifier: Notifier,
    ) -> None:
        self.config = config
        self.transport = transport
        self.correlator = correlator
        self.players = players
        self.notifier = notifier
        self.state = ConnectionState.DISCONNECTED
        self.handshake: Optional[asyncio.Future] = None
        self.auth_error: Optional[BaseException] = None
        self._heartbeat_installed = False

    def attach(self) -> None:
        """Subscribe the state machine to the transport's notifications."""
        self.transport.events.on(Notification.MESSAGE, self.on_message)
        self.transport.events.on(Notification.PARSE_ERROR, self.on_parse_error)
        self.transport.events.on(Notification.CLOSED, self.on_socket_closed)

    def authenticate_payload(self) -> Dict[str, Any]:
        return {
            "client_id": self.config.client_id,
            "client_secret": self.config.client_secret,
            "supports": list(self.config.supports),
            "channels": list(self.config.channels),
            "version": PROTOCOL_VERSION,
            "user_agent": self.config.user_agent,
        }

    # ========================================
    #           TRANSITIONS
    # ========================================

    async def on_socket_connected(self) -> None:
        if self.state is not ConnectionState.DISCONNECTED:
            raise InvalidTransitionError(f"socket connected while {self.state.value}")

        self._enter(ConnectionState.CONNECTED)
        await self.notifier.emit(Notification.CONNECTED)

        event = EventType.AUTHENTICATE.value
        self.handshake = self.correlator.wait(event, self.config.request_timeout)
        self.handshake.add_done_callback(self._record_handshake_failure)
        self._enter(ConnectionState.AUTHENTICATING)
        try:
            await self.transport.send(create_envelope(event, self.authenticate_payload()))
        except Exception:
            self.correlator.discard(event, self.handshake)
            raise

    async def on_message(self, envelope: Envelope) -> None:
        self.correlator.deliver(envelope)

        if (
            self.state is ConnectionState.AUTHENTICATING
            and self.handshake is not None
            and self.handshake.done()
            and not self.handshake.cancelled()
            and self.handshake.exception() is None
        ):
            self._enter(ConnectionState.AUTHENTICATED)
            self._install_heartbeat()
            await self.notifier.emit(Notification.AUTHENTICATED)

        await self.notifier.emit(Notification.MESSAGE, envelope)
        if envelope.event:
            await self.notifier.emit(inbound(envelope.event), envelope)

    async def on_parse_error(self, error: MalformedFrameError) -> None:
        await self.notifier.emit(Notification.PARSE_ERROR, error)

    async def on_socket_closed(self, code: Optional[int] = None, reason: str = "") -> None:
        if self.state is ConnectionState.CLOSED:
            return
        self._enter(ConnectionState.CLOSED)
        await self.notifier.emit(Notification.CLOSED, code, reason)

    # ========================================
    #           HEARTBEAT
    # ========================================

    async def on_heartbeat(self, envelope: Optional[Envelope] = None) -> None:
        """Answer the service ping with the current player list."""
        await self.transport.send(
            create_envelope(EventType.HEARTBEAT.value, {"players": self.players.snapshot()})
        )
        await self.notifier.emit(Notification.HEARTBEAT)

    def _install_heartbeat(self) -> None:
        if self._heartbeat_installed:
            return
        self.transport.events.on(inbound(EventType.HEARTBEAT.value), self.on_heartbeat)
        self._heartbeat_installed = True

    # ========================================
    #           HELPERS
    # ========================================

    def _enter(self, state: ConnectionState) -> None:
        logger.info("%s -> %s", self.state.value, state.value, extra={"state": state.value})
        self.state = state

    def _record_handshake_failure(self, future: asyncio.Future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            self.auth_error = error
            logger.warning("Authentication failed, session will not proceed: %s", error,
                           extra={"state": self.state.value})
