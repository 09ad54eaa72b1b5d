"""Integration tests: several devices sharing one room record."""

from datetime import timedelta

import pytest
import pytest_asyncio

from tips_core.events.types import EventType

from tests.conftest import OTHER_ROOM, ROOM, T0


async def settle(*devices) -> None:
    for device in devices:
        await device.settle()


@pytest_asyncio.fixture
async def pair(make_device):
    """Two devices with sessions open on the same room."""
    first, second = make_device(), make_device()
    await first.engine.start_session()
    await second.engine.start_session()
    await settle(first, second)
    yield first, second
    await first.engine.end_session()
    await second.engine.end_session()


@pytest.mark.asyncio
class TestMultiDevice:
    """Timer lifecycle seen from two devices."""

    async def test_start_reaches_other_device(self, pair):
        first, second = pair

        timer = await first.engine.start()
        await settle(first, second)

        assert second.engine.get_timer().id == timer.id
        assert second.engine.foreground_timer.end_time == T0 + timedelta(seconds=900)
        assert (await second.local_store.load(room_id=ROOM)).id == timer.id
        assert second.surface.is_showing(ROOM)

        found = [e for e in second.events if e.event_type == EventType.TIMER_FOUND]
        assert found[-1].data["source"] == "remote"

    async def test_snooze_on_other_device(self, pair, clock):
        first, second = pair
        timer = await first.engine.start()
        await settle(first, second)

        clock.advance(100)
        snoozed = await second.engine.snooze()
        await settle(first, second)

        assert snoozed.id == timer.id
        assert first.engine.get_timer().end_time == T0 + timedelta(seconds=400)
        assert first.engine.get_timer().id == timer.id

    async def test_stop_clears_everywhere(self, pair, clock):
        first, second = pair
        await first.engine.start()
        await settle(first, second)
        clock.advance(10)
        await second.engine.snooze()
        await settle(first, second)

        await first.engine.stop(clear_room=True)
        await settle(first, second)

        for device in (first, second):
            assert device.engine.get_timer() is None
            assert device.center.pending_identifiers == []
            assert await device.local_store.load() is None
            assert not device.surface.is_showing(ROOM)

    async def test_offline_snooze_repaired_on_reconcile(self, pair, clock, db):
        first, second = pair
        await first.engine.start()
        await settle(first, second)

        db.set_failure("set")
        clock.advance(10)
        await first.engine.snooze(duration=1200)
        db.set_failure("set", enabled=False)
        await settle(first, second)
        assert second.engine.get_timer().end_time == T0 + timedelta(seconds=900)

        await first.engine.reconcile()
        await settle(first, second)

        assert second.engine.get_timer().end_time == T0 + timedelta(seconds=1210)

    async def test_override_reaches_other_device(self, pair):
        first, second = pair

        await first.engine.update_override(True, 60, actor_is_super_admin=True)
        await settle(first, second)

        assert second.engine.effective_duration() == 60
        assert EventType.OVERRIDE_CHANGED in second.event_types()
        timer = await second.engine.start()
        assert timer.end_time == T0 + timedelta(seconds=60)

    async def test_rooms_are_independent(self, pair):
        first, second = pair
        await second.engine.switch_room(OTHER_ROOM)

        await first.engine.start()
        await settle(first, second)

        assert second.engine.foreground_timer is None
        assert second.engine.get_timer(ROOM) is None

        found = await second.engine.check_active_timers([ROOM, OTHER_ROOM])
        assert list(found) == [ROOM]
        assert second.engine.foreground_timer is None


@pytest.mark.asyncio
async def test_background_fanout(make_device):
    """Without awaiting the fan-out the timer stores its grouping key."""
    device = make_device(await_fanout=False)
    await device.engine.start_session()

    timer = await device.engine.start()
    assert timer.notification_ids == [f"{timer.id}_room_{ROOM}"]

    await device.settle()
    assert len(device.center.pending_identifiers) == 2

    await device.engine.stop(clear_room=True)
    assert device.center.pending_identifiers == []
