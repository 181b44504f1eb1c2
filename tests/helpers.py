import asyncio
import json
import uuid
from typing import Any, Dict, List, Optional, Union


class DummyWebSocket:
    def __init__(self) -> None:
        self.sent_messages: list[str] = []
        self.closed = False
        self.close_code: Optional[int] = None
        self.close_reason: Optional[str] = None
        self._inbound: asyncio.Queue = asyncio.Queue()

    async def send(self, data: str) -> None:
        self.sent_messages.append(data)

    def sent(self) -> List[Dict[str, Any]]:
        return [json.loads(msg) for msg in self.sent_messages]

    def sent_events(self) -> List[str]:
        return [msg.get("event") for msg in self.sent()]

    def feed(self, frame: Union[str, bytes, Dict[str, Any]]) -> None:
        if isinstance(frame, dict):
            frame = json.dumps(frame)
        self._inbound.put_nowait(frame)

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        self.closed = True
        self.close_code = code
        self.close_reason = reason
        self._inbound.put_nowait(None)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._inbound.get()
        if item is None:
            raise StopAsyncIteration
        return item


def is_uuid_v4(s: str) -> bool:
    try:
        u = uuid.UUID(s)
    except ValueError:
        return False
    return u.version == 4 and str(u) == s.lower()


async def wait_for(predicate, timeout=1.0):
    loop = asyncio.get_running_loop()
    end = loop.time() + timeout
    while loop.time() < end:
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return predicate()


async def deliver(client, frame: Dict[str, Any]) -> None:
    """Push one frame through the client's transport as if it came off the socket."""
    await client.transport.dispatch(json.dumps(frame))


async def authenticate(client) -> None:
    await deliver(client, {"event": "authenticate", "status": "success", "ts": 1})


def record(client, *names: str) -> List[Any]:
    """Collect local notifications in the order they fire."""
    seen: List[Any] = []
    for name in names:
        client.on(name, lambda *args, _name=name: seen.append(_name))
    return seen
