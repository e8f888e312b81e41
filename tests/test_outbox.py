import asyncio
import contextlib
import uuid

import pytest
from sqlalchemy import select

from app.core import db
from app.modules.events.outbox import EventOutbox, OutboxService, TOPIC, relay_once, run_outbox_relay
from app.platform.adapters.bus_noop import NoopEventBus
from app.platform.provider_registry import registry


class FlakyBus:
    async def publish(self, topic, key, value, headers=None):
        raise ConnectionError("stream unavailable")


@pytest.mark.asyncio
async def test_relay_publishes_pending_events(session):
    subject = uuid.uuid4()
    await OutboxService(session).enqueue("BOOKING_REQUESTED", "booking", subject, {"slot": "09:00"})
    await session.commit()
    bus = NoopEventBus()

    assert await relay_once(session, bus) == 1

    topic, key, envelope = bus.sent[0]
    assert topic == TOPIC
    assert key == str(subject)
    assert envelope["event_type"] == "BOOKING_REQUESTED"
    assert envelope["payload"] == {"slot": "09:00"}

    ev = (await session.execute(select(EventOutbox))).scalar_one()
    assert ev.status == "sent"
    # nothing left to claim
    assert await relay_once(session, bus) == 0


@pytest.mark.asyncio
async def test_failed_publish_is_rescheduled(session):
    await OutboxService(session).enqueue("SCHEDULE_CREATED", "schedule", uuid.uuid4(), {})
    await session.commit()

    assert await relay_once(session, FlakyBus()) == 1

    ev = (await session.execute(select(EventOutbox))).scalar_one()
    assert ev.status == "pending"
    assert ev.attempts == 1
    assert "stream unavailable" in ev.last_error
    # backed off, so not immediately claimable again
    assert await relay_once(session, NoopEventBus()) == 0


@pytest.mark.asyncio
async def test_background_relay_publishes_to_registered_bus(session_factory, monkeypatch):
    subject = uuid.uuid4()
    async with session_factory() as s:
        await OutboxService(s).enqueue("BOOKING_STATUS_CHANGED", "booking", subject, {"to": "CONFIRMED"})
        await s.commit()
    monkeypatch.setattr(db, "SessionLocal", session_factory)
    bus = NoopEventBus()
    registry.set_event_bus(bus)
    assert registry.event_bus() is bus

    task = asyncio.create_task(run_outbox_relay(poll_interval_seconds=0.01))
    try:
        for _ in range(300):
            if bus.sent:
                break
            await asyncio.sleep(0.01)
    finally:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        await registry.close()

    assert [(key, value["event_type"]) for _, key, value in bus.sent] == [(str(subject), "BOOKING_STATUS_CHANGED")]
