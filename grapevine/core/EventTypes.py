from __future__ import annotations

from enum import Enum

PROTOCOL_VERSION = "2.3.0"

# Prefix under which inbound events are re-emitted locally, e.g. "grapevine/heartbeat"
INBOUND_PREFIX = "grapevine/"


class EventType(str, Enum):
    """Grapevine wire events."""

    # Client -> service requests
    AUTHENTICATE = "authenticate"                # handshake, gates the session
    HEARTBEAT = "heartbeat"                      # reply to the service ping, carries players
    PLAYERS_SIGN_IN = "players/sign-in"
    PLAYERS_SIGN_OUT = "players/sign-out"
    PLAYERS_STATUS = "players/status"            # status of every connected game
    GAMES_STATUS = "games/status"                # status of one game
    TELLS_SEND = "tells/send"

    # Service -> client broadcasts
    TELLS_RECEIVE = "tells/receive"
    GAMES_CONNECT = "games/connect"
    GAMES_DISCONNECT = "games/disconnect"
    CHANNELS_BROADCAST = "channels/broadcast"


class Notification(str, Enum):
    """Local notifications emitted on a client's notifier."""

    CONNECTED = "connected"
    AUTHENTICATED = "authenticated"
    HEARTBEAT = "heartbeat"
    MESSAGE = "json"                             # every decoded inbound envelope
    PARSE_ERROR = "json.error"                   # malformed frame, connection stays open
    CLOSED = "close"


class ConnectionState(str, Enum):
    """Handshake lifecycle. Transitions only move forward."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    CLOSED = "closed"


def inbound(event: str) -> str:
    """Local notification name for an inbound wire event."""
    return f"{INBOUND_PREFIX}{event}"
