from __future__ import annotations
from typing import TYPE_CHECKING, Callable, Optional

from grapevine.core.EventCorrelator import EventCorrelator
from grapevine.core.EventTypes import EventType
from shared.envelope import create_envelope
from shared.log import get_logger
from shared.utils import iso_now, is_nonempty_str, new_ref, split_target

if TYPE_CHECKING:
    from grapevine.ws_client import GrapevineSocket

logger = get_logger(__name__)

TELL_SENT = "sent"


class TellDispatcher:
    """Sends tells and waits for the service acknowledgement."""

    def __init__(
        self,
        transport: "GrapevineSocket",
        correlator: EventCorrelator,
        ref_factory: Callable[[], str] = new_ref,
        timeout: Optional[float] = None,
    ) -> None:
        self.transport = transport
        self.correlator = correlator
        self.ref_factory = ref_factory
        self.timeout = timeout

    async def send(self, message: str, from_name: str, target: str,
                   game_name: Optional[str] = None) -> str:
        """
        Send a tell to `target`, which may be 'Player' or 'Player@Game'.

        Returns:
            TELL_SENT once the service acknowledges

        Raises:
            RequestRejectedError: the service refused the tell; `.error` is its error object
            WaitTimeoutError: a timeout was configured and no acknowledgement arrived
        """
        to_name, to_game = split_target(target, game_name)
        ref = self.ref_factory()
        envelope = create_envelope(
            EventType.TELLS_SEND.value,
            {
                "from_name": from_name,
                "to_game": to_game,
                "to_name": to_name,
                "sent_at": iso_now(),
                "message": message,
            },
            ref=ref,
        )

        event = EventType.TELLS_SEND.value
        ack = self.correlator.wait(event, self.timeout)
        try:
            await self.transport.send(envelope)
        except Exception:
            self.correlator.discard(event, ack)
            raise

        await ack
        logger.debug("Tell from %s to %s@%s acknowledged", from_name, to_name, to_game,
                     extra={"event": event, "ref": ref})
        return TELL_SENT


class StatusQuery:
    """
    Fire-and-forget status requests. Answers arrive as `players/status` or
    `games/status` broadcasts; wait on those events to receive them.
    """

    def __init__(self, transport: "GrapevineSocket",
                 ref_factory: Callable[[], str] = new_ref) -> None:
        self.transport = transport
        self.ref_factory = ref_factory

    async def request(self, game: Optional[str] = None) -> str:
        """Send the status request and return its ref."""
        ref = self.ref_factory()
        if is_nonempty_str(game):
            envelope = create_envelope(EventType.GAMES_STATUS.value, {"game": game}, ref=ref)
        else:
            envelope = create_envelope(EventType.PLAYERS_STATUS.value, ref=ref)
        await self.transport.send(envelope)
        return ref
