from __future__ import annotations

import inspect
from enum import Enum
from typing import Any, Callable, Dict, List, Union

from shared.log import get_logger

logger = get_logger(__name__)

# Handlers may be plain callables or coroutine functions
Handler = Callable[..., Any]
Name = Union[str, Enum]


def _key(name: Name) -> str:
    # enum members and their string values share one handler list
    return name.value if isinstance(name, Enum) else name


class Notifier:
    """
    Named-notification dispatch held by composition.

    Handlers run in registration order on the caller's task; coroutine
    handlers are awaited before the next one runs so emission preserves
    inbound ordering. A failing handler is logged and does not stop the
    others.
    """

    def __init__(self) -> None:
        self._handlers: Dict[str, List[Handler]] = {}

    def on(self, name: Name, handler: Handler) -> None:
        self._handlers.setdefault(_key(name), []).append(handler)

    def once(self, name: Name, handler: Handler) -> None:
        def _once(*args: Any) -> Any:
            self.off(name, _once)
            return handler(*args)

        self.on(name, _once)

    def off(self, name: Name, handler: Handler) -> bool:
        handlers = self._handlers.get(_key(name))
        if not handlers or handler not in handlers:
            return False
        handlers.remove(handler)
        if not handlers:
            del self._handlers[_key(name)]
        return True

    def listeners(self, name: Name) -> List[Handler]:
        return list(self._handlers.get(_key(name), []))

    async def emit(self, name: Name, *args: Any) -> int:
        """Call every handler for `name`; returns how many were called."""
        handlers = self.listeners(name)
        for handler in handlers:
            try:
                result = handler(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Handler for %s failed", _key(name))
        return len(handlers)
