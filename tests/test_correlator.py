import asyncio

import pytest

from grapevine.core.EventCorrelator import EventCorrelator
from shared.envelope import Envelope, RequestRejectedError, WaitTimeoutError


@pytest.mark.asyncio
async def test_success_resolves_single_waiter_and_empties_queue():
    correlator = EventCorrelator()
    fut = correlator.wait("tells/send")

    ack = Envelope(event="tells/send", ref="r1", status="success")
    assert correlator.deliver(ack) == 1

    assert fut.done()
    assert fut.result() is ack
    assert correlator.pending("tells/send") == 0
    assert correlator.pending_events() == []


@pytest.mark.asyncio
async def test_failure_rejects_with_service_error_verbatim():
    correlator = EventCorrelator()
    fut = correlator.wait("tells/send")
    error = {"code": "unknown-player", "message": "bob is not online"}

    correlator.deliver(Envelope(event="tells/send", status="error", error=error))

    with pytest.raises(RequestRejectedError) as exc_info:
        await fut
    assert exc_info.value.error is error
    assert exc_info.value.event == "tells/send"
    assert correlator.pending("tells/send") == 0


@pytest.mark.asyncio
async def test_broadcast_resolves_every_waiter_and_keeps_them_queued():
    correlator = EventCorrelator()
    first = correlator.wait("players/status")
    second = correlator.wait("players/status")

    broadcast = Envelope(event="players/status", payload={"game": "ExampleGame", "players": ["eric"]})
    assert correlator.deliver(broadcast) == 2

    assert first.result() is broadcast
    assert second.result() is broadcast
    assert correlator.pending("players/status") == 2


@pytest.mark.asyncio
async def test_acknowledgements_are_consumed_oldest_first():
    correlator = EventCorrelator()
    first = correlator.wait("tells/send")
    second = correlator.wait("tells/send")

    ack_a = Envelope(event="tells/send", ref="a", status="success")
    ack_b = Envelope(event="tells/send", ref="b", status="success")
    correlator.deliver(ack_a)

    assert first.result() is ack_a
    assert not second.done()
    assert correlator.pending("tells/send") == 1

    correlator.deliver(ack_b)
    assert second.result() is ack_b


@pytest.mark.asyncio
async def test_failure_only_affects_the_head_waiter():
    correlator = EventCorrelator()
    first = correlator.wait("tells/send")
    second = correlator.wait("tells/send")
    other = correlator.wait("authenticate")

    correlator.deliver(Envelope(event="tells/send", status="failure", error={"message": "nope"}))

    assert isinstance(first.exception(), RequestRejectedError)
    assert not second.done()
    assert not other.done()


@pytest.mark.asyncio
async def test_ack_after_broadcast_pops_the_already_resolved_waiter():
    correlator = EventCorrelator()
    fut = correlator.wait("games/status")
    broadcast = Envelope(event="games/status", payload={"game": "ExampleGame"})
    correlator.deliver(broadcast)

    touched = correlator.deliver(Envelope(event="games/status", status="success"))

    assert touched == 0
    assert fut.result() is broadcast
    assert correlator.pending("games/status") == 0


@pytest.mark.asyncio
async def test_unmatched_and_eventless_envelopes_are_dropped():
    correlator = EventCorrelator()
    fut = correlator.wait("tells/send")

    assert correlator.deliver(Envelope(event="heartbeat")) == 0
    assert correlator.deliver(Envelope(status="success")) == 0
    assert not fut.done()
    assert correlator.pending("tells/send") == 1


@pytest.mark.asyncio
async def test_waiter_without_reply_stays_pending():
    correlator = EventCorrelator()
    fut = correlator.wait("tells/send")

    await asyncio.sleep(0.05)

    assert not fut.done()
    assert correlator.pending("tells/send") == 1


@pytest.mark.asyncio
async def test_timeout_removes_and_rejects_waiter():
    correlator = EventCorrelator()
    fut = correlator.wait("tells/send", timeout=0.01)

    with pytest.raises(WaitTimeoutError):
        await fut
    assert correlator.pending("tells/send") == 0


@pytest.mark.asyncio
async def test_default_timeout_applies_when_none_given():
    correlator = EventCorrelator(default_timeout=0.01)
    fut = correlator.wait("authenticate")

    with pytest.raises(WaitTimeoutError):
        await fut


@pytest.mark.asyncio
async def test_resolved_waiter_does_not_time_out_later():
    correlator = EventCorrelator()
    fut = correlator.wait("tells/send", timeout=0.02)
    ack = Envelope(event="tells/send", status="success")
    correlator.deliver(ack)

    await asyncio.sleep(0.05)

    assert fut.result() is ack


@pytest.mark.asyncio
async def test_discard_and_cancel_all():
    correlator = EventCorrelator()
    kept = correlator.wait("tells/send")
    dropped = correlator.wait("tells/send")
    stray = correlator.wait("players/status")

    assert correlator.discard("tells/send", dropped) is True
    assert correlator.discard("tells/send", dropped) is False
    assert correlator.pending("tells/send") == 1

    assert correlator.cancel_all() == 2
    assert kept.cancelled()
    assert stray.cancelled()
    assert not dropped.done()
    assert correlator.pending_events() == []
