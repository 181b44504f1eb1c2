from __future__ import annotations
from typing import Optional, Union

import websockets

from grapevine.core.EventTypes import Notification, inbound
from grapevine.core.Notifier import Notifier
from shared.config import DEFAULT_PING_INTERVAL, DEFAULT_PING_TIMEOUT, DEFAULT_URL
from shared.envelope import Envelope, MalformedFrameError, NotConnectedError, stamp
from shared.log import get_logger, log_envelope

logger = get_logger(__name__)


class GrapevineSocket:
    """
    One websocket to the grapevine service.

    Outbound envelopes are stamped with `ts` and sent as compact JSON.
    Every inbound frame is decoded and re-emitted on `events`:

    - "json" with the Envelope
    - "grapevine/<event>" with the Envelope, when the frame names an event
    - "json.error" with a MalformedFrameError, when the frame does not decode
    - "close" with (code, reason), once, when the socket goes away
    """

    def __init__(
        self,
        url: str = DEFAULT_URL,
        *,
        ping_interval: Optional[float] = DEFAULT_PING_INTERVAL,
        ping_timeout: Optional[float] = DEFAULT_PING_TIMEOUT,
    ) -> None:
        self.url = url
        self.ping_interval = ping_interval
        self.ping_timeout = ping_timeout
        self.websocket: Optional[websockets.ClientConnection] = None
        self.events = Notifier()
        self._closed = False

    @property
    def connected(self) -> bool:
        return self.websocket is not None and not self._closed

    async def connect(self) -> None:
        """Open the websocket to the service"""
        logger.info("Connecting to %s", self.url)
        self.websocket = await websockets.connect(
            self.url,
            ping_interval=self.ping_interval,
            ping_timeout=self.ping_timeout,
        )

    async def send(self, envelope: Envelope) -> None:
        """Stamp `ts` and write the envelope."""
        if not self.connected:
            raise NotConnectedError(f"Cannot send {envelope.event}: socket is not open")
        assert self.websocket is not None

        stamp(envelope)
        await self.websocket.send(envelope.to_json())
        log_envelope(logger, "debug", "Sent frame", envelope)

    async def dispatch(self, raw: Union[str, bytes]) -> None:
        """Decode one inbound frame and fan it out."""
        try:
            if isinstance(raw, bytes):
                raw = raw.decode('utf-8')
            envelope = Envelope.from_json(raw)
        except (MalformedFrameError, UnicodeDecodeError) as e:
            error = e if isinstance(e, MalformedFrameError) else MalformedFrameError(str(e))
            logger.warning("Dropping malformed frame: %s", error)
            await self.events.emit(Notification.PARSE_ERROR, error)
            return

        log_envelope(logger, "debug", "Received frame", envelope)
        await self.events.emit(Notification.MESSAGE, envelope)
        if envelope.event:
            await self.events.emit(inbound(envelope.event), envelope)

    async def recv_loop(self) -> None:
        """Read frames until the socket closes."""
        assert self.websocket is not None
        code: Optional[int] = None
        reason = ""
        try:
            async for raw in self.websocket:
                await self.dispatch(raw)
        except websockets.exceptions.ConnectionClosed as e:
            logger.warning("Connection closed: %s", e)
        finally:
            if self.websocket is not None:
                code = getattr(self.websocket, "close_code", None)
                reason = getattr(self.websocket, "close_reason", None) or ""
            await self._mark_closed(code, reason)

    async def close(self) -> None:
        if self.websocket is not None and not self._closed:
            await self.websocket.close(code=1000)

    async def _mark_closed(self, code: Optional[int], reason: str) -> None:
        if self._closed:
            return
        self._closed = True
        logger.info("Socket closed (code=%s reason=%s)", code, reason)
        await self.events.emit(Notification.CLOSED, code, reason)
