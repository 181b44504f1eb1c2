#!/usr/bin/env python3
"""
Grapevine client

Connects a game to grapevine.haus: authenticates, answers heartbeats with the
online player list, and exposes sign-in/sign-out notifications, tells and
status queries.

    client = Grapevine(client_id, client_secret, supports=["channels", "players", "tells"])
    client.on("authenticated", on_ready)
    await client.connect()
    await client.send_tell("hello!", "alice", "bob@OtherGame")
"""

from __future__ import annotations
import asyncio
from typing import List, Optional

from grapevine.core.ConnectionController import ConnectionController, InvalidTransitionError
from grapevine.core.EventCorrelator import EventCorrelator
from grapevine.core.EventTypes import ConnectionState, EventType
from grapevine.core.Notifier import Handler, Notifier
from grapevine.requests import StatusQuery, TellDispatcher
from grapevine.state import PlayerRegistry
from grapevine.ws_client import GrapevineSocket
from shared.config import DEFAULT_URL, ClientConfig
from shared.envelope import create_envelope
from shared.log import get_logger

logger = get_logger(__name__)


class Grapevine:
    """
    One authenticated connection to grapevine.

    Local notifications (subscribe with `on`):
        "connected", "authenticated", "heartbeat", "close" (code, reason),
        "json" (Envelope), "json.error" (MalformedFrameError),
        "grapevine/<event>" (Envelope) for every inbound event.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        *,
        supports: Optional[List[str]] = None,
        channels: Optional[List[str]] = None,
        players: Optional[List[str]] = None,
        user_agent: Optional[str] = None,
        url: str = DEFAULT_URL,
        request_timeout: Optional[float] = None,
        config: Optional[ClientConfig] = None,
    ) -> None:
        self.config = config or ClientConfig(
            client_id=client_id,
            client_secret=client_secret,
            supports=supports or [],
            channels=channels or [],
            players=players or [],
            user_agent=user_agent,
            url=url,
            request_timeout=request_timeout,
        )
        self.events = Notifier()
        self.transport = GrapevineSocket(
            self.config.url,
            ping_interval=self.config.ping_interval,
            ping_timeout=self.config.ping_timeout,
        )
        self.correlator = EventCorrelator()
        self.players = PlayerRegistry(self.config.players)
        self.controller = ConnectionController(
            self.config, self.transport, self.correlator, self.players, self.events
        )
        self.controller.attach()
        self.tells = TellDispatcher(self.transport, self.correlator,
                                    timeout=self.config.request_timeout)
        self.status = StatusQuery(self.transport)
        self._recv_task: Optional[asyncio.Task] = None

    @classmethod
    def from_config(cls, config: ClientConfig) -> "Grapevine":
        return cls(config.client_id, config.client_secret, config=config)

    # ========================================
    #           LIFECYCLE
    # ========================================

    @property
    def state(self) -> ConnectionState:
        return self.controller.state

    @property
    def handshake(self) -> Optional[asyncio.Future]:
        """Authenticate acknowledgement future; rejected if the service refuses us."""
        return self.controller.handshake

    async def connect(self) -> None:
        """Open the socket, start reading and send `authenticate`. Does not wait for the reply."""
        if self.state is not ConnectionState.DISCONNECTED or self.transport.websocket is not None:
            raise InvalidTransitionError(f"connect() called while {self.state.value}")
        await self.transport.connect()
        self._recv_task = asyncio.create_task(self.transport.recv_loop())
        await self.controller.on_socket_connected()

    async def wait_authenticated(self, timeout: Optional[float] = None) -> None:
        """Wait for the handshake acknowledgement; raises what the handshake raised."""
        if self.handshake is None:
            raise RuntimeError("connect() has not been called")
        await asyncio.wait_for(asyncio.shield(self.handshake), timeout)

    async def wait_closed(self) -> None:
        if self._recv_task is not None:
            await self._recv_task

    async def close(self) -> None:
        """Close the socket and cancel outstanding waits."""
        await self.transport.close()
        if self._recv_task is not None:
            self._recv_task.cancel()
            try:
                await self._recv_task
            except asyncio.CancelledError:
                pass
            self._recv_task = None
        await self.controller.on_socket_closed(1000, "client closed")
        cancelled = self.correlator.cancel_all()
        if cancelled:
            logger.info("Cancelled %d pending wait(s) on close", cancelled)

    async def __aenter__(self) -> "Grapevine":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ========================================
    #           NOTIFICATIONS
    # ========================================

    def on(self, name: str, handler: Handler) -> None:
        self.events.on(name, handler)

    def once(self, name: str, handler: Handler) -> None:
        self.events.once(name, handler)

    def off(self, name: str, handler: Handler) -> bool:
        return self.events.off(name, handler)

    def wait(self, event: str, timeout: Optional[float] = None) -> asyncio.Future:
        """Future for the next `event` envelope from the service."""
        if timeout is None:
            timeout = self.config.request_timeout
        return self.correlator.wait(event, timeout)

    # ========================================
    #           PLAYERS
    # ========================================

    async def sign_in(self, name: str) -> None:
        await self.transport.send(create_envelope(EventType.PLAYERS_SIGN_IN.value, {"name": name}))

    async def sign_out(self, name: str) -> None:
        await self.transport.send(create_envelope(EventType.PLAYERS_SIGN_OUT.value, {"name": name}))

    async def add_player(self, name: str, announce: bool = False) -> bool:
        """Add `name` to the heartbeat list; optionally send players/sign-in."""
        if not self.players.add(name):
            return False
        if announce:
            await self.sign_in(name)
        return True

    async def remove_player(self, name: str, announce: bool = False) -> bool:
        """Remove `name` from the heartbeat list; optionally send players/sign-out."""
        if not self.players.remove(name):
            return False
        if announce:
            await self.sign_out(name)
        return True

    # ========================================
    #           REQUESTS
    # ========================================

    async def get_status(self, game: Optional[str] = None) -> str:
        """
        Ask for `games/status` of one game, or `players/status` of all games.
        Returns the request ref; the answer arrives as a broadcast.
        """
        return await self.status.request(game)

    async def send_tell(self, message: str, from_name: str, target: str,
                        game_name: Optional[str] = None) -> str:
        return await self.tells.send(message, from_name, target, game_name)

    def __repr__(self) -> str:
        return f"<Grapevine {self.config.client_id[:8]}... state={self.state.value}>"

