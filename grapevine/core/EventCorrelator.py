from __future__ import annotations

import asyncio
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional

from shared.envelope import Envelope, RequestRejectedError, WaitTimeoutError
from shared.log import get_logger, log_envelope

logger = get_logger(__name__)


@dataclass(eq=False)
class PendingWaiter:
    event_name: str
    future: asyncio.Future
    enqueued_at: float = field(default_factory=time.monotonic)
    timer: Optional[asyncio.TimerHandle] = None

    def settled(self) -> bool:
        return self.future.done()

    def resolve(self, envelope: Envelope) -> bool:
        if self.future.done():
            return False
        self._stop_timer()
        self.future.set_result(envelope)
        return True

    def reject(self, exc: BaseException) -> bool:
        if self.future.done():
            return False
        self._stop_timer()
        self.future.set_exception(exc)
        return True

    def _stop_timer(self) -> None:
        if self.timer is not None:
            self.timer.cancel()
            self.timer = None


class EventCorrelator:
    """
    Matches inbound envelopes to callers waiting on an event name.

    Each event name has a FIFO of waiters:

    - status "success": the oldest waiter is resolved with the envelope and removed
    - any other status: the oldest waiter is rejected with RequestRejectedError and removed
    - no status (broadcast): every queued waiter is resolved and all of them stay queued

    The broadcast path does not dequeue. A later acknowledgement for the same
    event name therefore pops an already-resolved waiter first.

    Waits never expire unless a timeout is passed to `wait`.
    """

    def __init__(self, default_timeout: Optional[float] = None) -> None:
        self.default_timeout = default_timeout
        self._waiters: Dict[str, Deque[PendingWaiter]] = {}

    def wait(self, event_name: str, timeout: Optional[float] = None) -> asyncio.Future:
        """
        Queue a waiter for the next matching `event_name` envelope.

        Must be called from a running event loop. Register before sending the
        request whose reply is awaited.

        Args:
            event_name: Wire event name, e.g. "tells/send"
            timeout: Seconds before the waiter is removed and rejected with
                WaitTimeoutError. Defaults to the correlator's default_timeout.

        Returns:
            Future resolved with the matching Envelope
        """
        loop = asyncio.get_running_loop()
        waiter = PendingWaiter(event_name=event_name, future=loop.create_future())
        self._waiters.setdefault(event_name, deque()).append(waiter)

        timeout = self.default_timeout if timeout is None else timeout
        if timeout is not None:
            waiter.timer = loop.call_later(timeout, self._expire, waiter, timeout)

        logger.debug("Waiting on %s (%d pending)", event_name, self.pending(event_name))
        return waiter.future

    def deliver(self, envelope: Envelope) -> int:
        """
        Route one inbound envelope to its waiters.

        Returns:
            Number of waiters resolved or rejected
        """
        if not envelope.event:
            return 0
        queue = self._waiters.get(envelope.event)
        if not queue:
            return 0

        if envelope.status is None:
            touched = sum(1 for waiter in list(queue) if waiter.resolve(envelope))
            log_envelope(logger, "debug", f"Broadcast resolved {touched} waiter(s)", envelope)
            return touched

        waiter = queue.popleft()
        if not queue:
            del self._waiters[envelope.event]

        if envelope.succeeded:
            touched = waiter.resolve(envelope)
        else:
            log_envelope(logger, "warning", f"Request rejected: {envelope.error!r}", envelope)
            touched = waiter.reject(RequestRejectedError(envelope.event, envelope.error))
        return int(touched)

    def discard(self, event_name: str, future: asyncio.Future) -> bool:
        """Remove the waiter owning `future` without settling it."""
        queue = self._waiters.get(event_name)
        if not queue:
            return False
        for waiter in queue:
            if waiter.future is future:
                waiter._stop_timer()
                queue.remove(waiter)
                if not queue:
                    del self._waiters[event_name]
                return True
        return False

    def cancel_all(self) -> int:
        """Cancel every outstanding waiter and forget all queues."""
        cancelled = 0
        for queue in self._waiters.values():
            for waiter in queue:
                waiter._stop_timer()
                if waiter.future.cancel():
                    cancelled += 1
        self._waiters.clear()
        return cancelled

    def pending(self, event_name: str) -> int:
        return len(self._waiters.get(event_name, ()))

    def pending_events(self) -> List[str]:
        return list(self._waiters.keys())

    def _expire(self, waiter: PendingWaiter, timeout: float) -> None:
        waiter.timer = None
        self.discard(waiter.event_name, waiter.future)
        if waiter.reject(WaitTimeoutError(f"No {waiter.event_name} reply within {timeout}s")):
            logger.warning("Wait on %s timed out after %ss", waiter.event_name, timeout)
