"""Tests for the live activity mirror."""

from datetime import timedelta

import pytest

from tips_core.activity.memory import InMemoryLiveActivitySurface
from tips_core.activity.mirror import LiveActivityMirror, activity_path
from tips_core.models.activity import LiveActivityState


@pytest.fixture
def mirror(surface, db, clock) -> LiveActivityMirror:
    return LiveActivityMirror(surface, db, clock)


@pytest.mark.asyncio
class TestLiveActivityMirror:
    """Tests for LiveActivityMirror."""

    async def test_start_requests_and_publishes(self, mirror, surface, db, clock):
        end = clock.now() + timedelta(seconds=900)
        assert await mirror.start("room_1", "Sam", end, 900) is True

        state = surface.state_for("room_1")
        assert state.room_name == "Sam"
        assert state.end_time == end
        assert state.total_duration == 900

        record = await db.get(activity_path("room_1"))
        assert record["endTime"] == "2025-01-06T12:15:00Z"
        assert record["isActive"] is True

    async def test_restart_updates_in_place(self, mirror, surface, clock):
        await mirror.start("room_1", "Sam", clock.now() + timedelta(seconds=900), 900)
        await mirror.start("room_1", "Sam", clock.now() + timedelta(seconds=300), 300)

        assert surface.request_count == 1
        assert surface.state_for("room_1").total_duration == 300

    async def test_disabled_surface(self, db, clock):
        surface = InMemoryLiveActivitySurface(enabled=False)
        mirror = LiveActivityMirror(surface, db, clock)

        assert await mirror.start("room_1", "Sam", clock.now() + timedelta(seconds=60), 60) is False
        assert await db.get(activity_path("room_1")) is None

    async def test_request_failure_logged(self, mirror, surface, db, clock):
        surface.fail_requests = True
        assert await mirror.start("room_1", "Sam", clock.now() + timedelta(seconds=60), 60) is False
        assert not surface.is_showing("room_1")

    async def test_update_progress(self, mirror, surface, clock):
        end = clock.now() + timedelta(seconds=900)
        await mirror.start("room_1", "Sam", end, 900)
        clock.advance(10)

        assert await mirror.update_progress("room_1", end, 900) is True
        assert surface.state_for("room_1").progress(clock.now()) == pytest.approx(10 / 900)

    async def test_update_without_activity(self, mirror, clock):
        assert await mirror.update_progress("room_1", clock.now(), 900) is False

    async def test_mark_expired(self, mirror, surface, clock):
        await mirror.start("room_1", "Sam", clock.now() + timedelta(seconds=2), 900)
        clock.advance(1)

        assert await mirror.mark_expired("room_1", 900) is True
        state = surface.state_for("room_1")
        assert state.end_time == clock.now()
        assert state.is_active is False

    async def test_end_clears_record(self, mirror, surface, db, clock):
        await mirror.start("room_1", "Sam", clock.now() + timedelta(seconds=60), 60)
        assert await mirror.end("room_1") is True

        assert not surface.is_showing("room_1")
        assert len(surface.ended) == 1
        assert await db.get(activity_path("room_1")) is None

    async def test_end_without_activity(self, mirror):
        assert await mirror.end("room_1") is False

    async def test_observe_joins_remote_activity(self, db, clock):
        """A second device shows the countdown published by the first."""
        first, second = InMemoryLiveActivitySurface(), InMemoryLiveActivitySurface()
        publisher = LiveActivityMirror(first, db, clock)
        observer = LiveActivityMirror(second, db, clock)

        await observer.observe("room_1")
        await publisher.start("room_1", "Sam", clock.now() + timedelta(seconds=900), 900)
        await db.drain()
        assert second.is_showing("room_1")

        await publisher.end("room_1")
        await db.drain()
        assert not second.is_showing("room_1")

    async def test_observe_ignores_expired_record(self, mirror, surface, db, clock):
        state = LiveActivityState(room_id="room_1", end_time=clock.now() - timedelta(seconds=1))
        await db.set(activity_path("room_1"), state.to_record())

        await mirror.observe("room_1")
        await db.drain()
        assert not surface.is_showing("room_1")

    async def test_single_observer(self, mirror, db):
        await mirror.observe("room_1")
        await mirror.observe("room_2")
        assert mirror.observed_room_id == "room_2"
        assert db.subscription_count == 1

        mirror.stop_observing()
        assert mirror.observed_room_id is None
        assert db.subscription_count == 0

    async def test_observe_failure(self, mirror, db):
        db.set_failure("subscribe")
        assert await mirror.observe("room_1") is None
