from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional
import json

from shared.utils import now_ms


class GrapevineError(Exception):
    """Base class for errors raised by the grapevine client."""
    pass
class MalformedFrameError(GrapevineError):
    """Raised when an inbound frame is not a JSON object."""
    pass
class NotConnectedError(GrapevineError):
    """Raised when sending without a live websocket."""
    pass
class WaitTimeoutError(GrapevineError):
    """Raised when an opt-in wait deadline elapses before a reply arrives."""
    pass


class RequestRejectedError(GrapevineError):
    """
    A request acknowledged with a non-success status.

    `error` is the service-provided error object, unchanged.
    """

    def __init__(self, event: Optional[str], error: Any) -> None:
        self.event = event
        self.error = error
        super().__init__(f"{event} rejected: {error!r}")


@dataclass
class Envelope:
    """
    One JSON frame on the grapevine socket:
    {
    "event":   "STRING",
    "ref":     "UUID (optional, correlation token)",
    "payload": { ... } (optional),
    "ts":      "INT (unix ms, stamped at send time)",
    "status":  "success" | other (responses only),
    "error":   { ... } (failed responses only)
    }

    A frame without `status` is a broadcast.
    """
    event: Optional[str] = None
    ref: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None
    ts: Optional[int] = None
    status: Optional[str] = None
    error: Any = None

    @property
    def is_response(self) -> bool:
        return self.status is not None

    @property
    def succeeded(self) -> bool:
        return self.status == "success"

    @classmethod
    def from_json(cls, json_str: str) -> 'Envelope':
        """Parse JSON string into Envelope"""
        try:
            data = json.loads(json_str)
        except (ValueError, RecursionError) as e:
            raise MalformedFrameError(f"Invalid JSON: {e}") from e

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Any) -> 'Envelope':
        """Create Envelope from a decoded frame. Unknown keys are ignored."""
        if not isinstance(data, dict):
            raise MalformedFrameError(f"Frame must be a JSON object, got {type(data).__name__}")

        event = data.get('event')
        if event is not None and not isinstance(event, str):
            raise MalformedFrameError("'event' must be a string")
        status = data.get('status')
        if status is not None and not isinstance(status, str):
            raise MalformedFrameError("'status' must be a string")

        return cls(
            event=event,
            ref=data.get('ref'),
            payload=data.get('payload'),
            ts=data.get('ts'),
            status=status,
            error=data.get('error'),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert Envelope back to dictionary, omitting absent fields"""
        result: Dict[str, Any] = {}
        for key in ('event', 'ref', 'payload', 'ts', 'status', 'error'):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        return result

    def to_json(self) -> str:
        """Convert Envelope to JSON string"""
        return json.dumps(self.to_dict(), separators=(',', ':'))


def create_envelope(event: str, payload: Optional[Dict[str, Any]] = None,
                    ref: Optional[str] = None) -> Envelope:
    """Helper to create an outbound envelope. `ts` is left for the transport to stamp."""
    return Envelope(event=event, ref=ref, payload=payload)


def stamp(envelope: Envelope, ts: Optional[int] = None) -> Envelope:
    """Set the send timestamp, replacing whatever the caller put there."""
    envelope.ts = now_ms() if ts is None else ts
    return envelope
