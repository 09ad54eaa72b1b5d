"""Tests for the timer reconciliation engine."""

import asyncio
from datetime import timedelta
from uuid import uuid4

import pytest

from tips_core.context.session import StaticSessionContext
from tips_core.engine.reconciler import TimerPhase, TimerReconciliationEngine
from tips_core.events.types import EventType
from tips_core.models.config import StorageConfig, TipsConfig
from tips_core.models.notification import OS_DEFAULT_ACTION_IDENTIFIER, NotificationAction
from tips_core.models.timer import TreatmentTimer
from tips_core.storage.remote import RemoteTimerMirror
from tips_core.utils.exceptions import PermissionDeniedError, ValidationError

from tests.conftest import OTHER_ROOM, ROOM, T0


def timer_ending(seconds: float) -> TreatmentTimer:
    return TreatmentTimer(end_time=T0 + timedelta(seconds=seconds))


async def running(device, **kwargs) -> TreatmentTimer:
    """Start a session in the default room and a timer in it."""
    await device.engine.start_session()
    timer = await device.engine.start(**kwargs)
    await device.settle()
    return timer


def events_of(device, event_type):
    return [event for event in device.events if event.event_type == event_type]


@pytest.mark.asyncio
class TestStart:
    """Tests for starting a timer."""

    async def test_start_defaults(self, device):
        timer = await running(device)

        assert timer.end_time == T0 + timedelta(seconds=900)
        assert timer.room_name == "Sam"
        assert timer.associated_item_ids == sorted(device.items[ROOM], key=str)
        assert len(timer.notification_ids) == 2
        assert device.engine.foreground_timer.id == timer.id

        remote = await device.engine.remote.get(ROOM)
        assert remote.id == timer.id
        local = await device.local_store.load(room_id=ROOM)
        assert local.id == timer.id

        assert sorted(device.center.pending_identifiers) == sorted(timer.notification_ids)
        assert device.surface.state_for(ROOM).total_duration == 900
        assert EventType.TIMER_STARTED in device.event_types()

    async def test_custom_duration(self, device):
        timer = await running(device, duration=60)

        assert timer.end_time == T0 + timedelta(seconds=60)
        request = device.center.get(timer.notification_ids[0])
        assert request.delay_seconds == 60

    async def test_start_right_after_session_survives_initial_snapshot(self, device):
        """The empty snapshot queued by the watch must not tear down the new timer."""
        await device.engine.start_session()
        timer = await device.engine.start()
        await device.settle()

        assert device.engine.get_timer().id == timer.id
        assert device.center.pending_identifiers == sorted(timer.notification_ids)
        assert (await device.local_store.load(room_id=ROOM)).id == timer.id
        assert events_of(device, EventType.TIMER_STOPPED) == []
        assert events_of(device, EventType.TIMER_FOUND) == []

    async def test_stale_delivery_uses_current_record(self, device):
        timer = await running(device)

        await device.engine._on_remote(ROOM, None)

        assert device.engine.get_timer().id == timer.id
        assert device.center.pending_identifiers == sorted(timer.notification_ids)
        assert events_of(device, EventType.TIMER_STOPPED) == []

    async def test_sub_second_duration_raised_to_minimum(self, device):
        timer = await running(device, duration=0.5)

        assert timer.end_time == T0 + timedelta(seconds=1)
        assert device.engine.phase() is TimerPhase.RUNNING
        assert device.center.get(timer.notification_ids[0]).delay_seconds == 1

    async def test_all_items_logged_is_noop(self, device):
        device.log_all()
        await device.engine.start_session()

        assert await device.engine.start() is None
        assert await device.engine.remote.get(ROOM) is None
        assert device.center.pending_identifiers == []

    async def test_no_room_is_noop(self, device):
        device.session.set_current_room(None)
        assert await device.engine.start() is None

    async def test_invalid_duration(self, device):
        with pytest.raises(ValidationError):
            await device.engine.start(duration=-5)

    async def test_restart_replaces_timer(self, device):
        first = await running(device)
        second = await device.engine.start()
        await device.settle()

        assert second.id != first.id
        assert sorted(device.center.pending_identifiers) == sorted(second.notification_ids)
        assert (await device.engine.remote.get(ROOM)).id == second.id

    async def test_start_in_background_room(self, device):
        """Starting in a room that is not foregrounded leaves local storage alone."""
        await device.engine.start_session()
        timer = await device.engine.start(OTHER_ROOM)

        assert timer.room_name == "Alex"
        assert device.engine.foreground_timer is None
        assert await device.local_store.load() is None
        assert (await device.engine.remote.get(OTHER_ROOM)).id == timer.id


@pytest.mark.asyncio
class TestSnooze:
    """Tests for snoozing."""

    async def test_snooze_keeps_id(self, device, clock):
        timer = await running(device)
        clock.advance(100)

        snoozed = await device.engine.snooze()
        await device.settle()

        assert snoozed.id == timer.id
        assert snoozed.end_time == T0 + timedelta(seconds=400)
        assert (await device.engine.remote.get(ROOM)).end_time == snoozed.end_time
        assert sorted(device.center.pending_identifiers) == sorted(snoozed.notification_ids)
        assert device.center.get(snoozed.notification_ids[0]).delay_seconds == 300
        assert EventType.TIMER_SNOOZED in device.event_types()

    async def test_snooze_custom_duration(self, device, clock):
        await running(device)
        snoozed = await device.engine.snooze(duration=60)
        assert snoozed.end_time == T0 + timedelta(seconds=60)

    async def test_sub_second_snooze_raised_to_minimum(self, device):
        await running(device)
        snoozed = await device.engine.snooze(duration=0.2)

        assert snoozed.end_time == T0 + timedelta(seconds=1)
        assert device.engine.phase() is TimerPhase.RUNNING

    async def test_snooze_without_timer(self, device):
        await device.engine.start_session()
        assert await device.engine.snooze() is None


@pytest.mark.asyncio
class TestStop:
    """Tests for stopping."""

    async def test_stop_cancels_notifications_only(self, device):
        timer = await running(device)

        assert await device.engine.stop(ROOM) is True
        assert device.center.pending_identifiers == []
        assert device.engine.get_timer().id == timer.id
        assert (await device.engine.remote.get(ROOM)).id == timer.id

    async def test_stop_twice_publishes_once(self, device):
        await running(device)
        await device.engine.stop(ROOM)
        await device.engine.stop(ROOM)
        assert len(events_of(device, EventType.TIMER_STOPPED)) == 1

    async def test_stop_and_clear(self, device):
        await running(device)

        assert await device.engine.stop(ROOM, clear_room=True) is True
        await device.settle()

        assert device.engine.get_timer() is None
        assert device.engine.foreground_timer is None
        assert await device.engine.remote.get(ROOM) is None
        assert await device.local_store.load() is None
        assert not device.surface.is_showing(ROOM)

        assert await device.engine.stop(ROOM, clear_room=True) is False
        assert len(events_of(device, EventType.TIMER_STOPPED)) == 1

    async def test_stop_every_room(self, device):
        await device.engine.start_session()
        await device.engine.start()
        await device.engine.start(OTHER_ROOM)

        assert await device.engine.stop(clear_room=True) is True
        assert device.engine.active_timers == {}
        assert await device.engine.remote.get(ROOM) is None
        assert await device.engine.remote.get(OTHER_ROOM) is None


@pytest.mark.asyncio
class TestReconcile:
    """Tests for local/remote reconciliation."""

    async def test_later_local_repairs_remote(self, device):
        local, remote = timer_ending(600), timer_ending(300)
        await device.local_store.save(local, force=True, room_id=ROOM)
        await device.engine.remote.set(ROOM, remote)

        winner = await device.engine.start_session()

        assert winner.id == local.id
        assert (await device.engine.remote.get(ROOM)).id == local.id
        found = events_of(device, EventType.TIMER_FOUND)
        assert found[-1].data["source"] == "local"

    async def test_later_remote_saved_locally(self, device):
        local, remote = timer_ending(300), timer_ending(600)
        await device.local_store.save(local, force=True, room_id=ROOM)
        await device.engine.remote.set(ROOM, remote)

        winner = await device.engine.start_session()

        assert winner.id == remote.id
        assert (await device.local_store.load(room_id=ROOM)).id == remote.id

    async def test_equal_end_times_keep_remote(self, device):
        local, remote = timer_ending(600), timer_ending(600)
        await device.local_store.save(local, force=True, room_id=ROOM)
        await device.engine.remote.set(ROOM, remote)

        assert (await device.engine.start_session()).id == remote.id

    async def test_nothing_effective_clears(self, device):
        await device.engine.remote.set(ROOM, timer_ending(-10))

        assert await device.engine.start_session() is None
        assert device.engine.phase() is TimerPhase.NO_TIMER

    async def test_other_room_snapshot_ignored(self, device):
        await device.local_store.save(timer_ending(600), force=True, room_id=OTHER_ROOM)
        assert await device.engine.start_session() is None

    async def test_remote_read_failure_keeps_known_timer(self, device):
        timer = await running(device)
        device.db.set_failure("get")

        reconciled = await device.engine.reconcile()

        assert reconciled.id == timer.id
        assert device.engine.get_timer().id == timer.id

    async def test_remote_write_failure_reported(self, device):
        await device.engine.start_session()
        device.db.set_failure("set")

        timer = await device.engine.start()

        assert timer is not None
        errors = events_of(device, EventType.ERROR_OCCURRED)
        assert errors and errors[0].component == "remote"


@pytest.mark.asyncio
class TestRoomSwitching:
    """Tests for switching the foreground room and following remote changes."""

    async def test_single_watch(self, device):
        await device.engine.start_session()
        subscriptions = device.db.subscription_count

        await device.engine.switch_room(OTHER_ROOM)

        assert device.engine.remote.watched_room_id == OTHER_ROOM
        assert device.db.subscription_count == subscriptions
        switched = events_of(device, EventType.ROOM_SWITCHED)
        assert switched[-1].previous_room_id == ROOM

    async def test_previous_room_changes_ignored(self, device):
        await device.engine.start_session()
        await device.engine.switch_room(OTHER_ROOM)

        await RemoteTimerMirror(device.db).set(ROOM, timer_ending(600))
        await device.settle()

        assert device.engine.foreground_timer is None
        assert device.engine.get_timer(ROOM) is None

    async def test_switch_keeps_previous_notifications(self, device):
        timer = await running(device)
        await device.engine.switch_room(OTHER_ROOM)
        assert await device.scheduler.has_pending(timer.id, ROOM)

    async def test_switch_adopts_room_timer(self, device):
        await device.engine.start_session()
        other = timer_ending(600)
        await device.engine.remote.set(OTHER_ROOM, other)

        assert (await device.engine.switch_room(OTHER_ROOM)).id == other.id
        assert device.engine.foreground_timer.id == other.id

    async def test_switch_settles_debounced_save(self, device):
        await running(device)
        incoming = timer_ending(700)
        await RemoteTimerMirror(device.db).set(ROOM, incoming)
        await device.settle()
        assert device.local_store.has_pending_save

        await device.engine.switch_room(OTHER_ROOM)

        assert not device.local_store.has_pending_save

    async def test_remote_timer_applied(self, device):
        timer = await running(device)
        incoming = timer_ending(700)

        await RemoteTimerMirror(device.db).set(ROOM, incoming)
        await device.settle()

        assert device.engine.get_timer().id == incoming.id
        assert device.engine.foreground_timer.id == incoming.id
        assert not await device.scheduler.has_pending(timer.id, ROOM)
        assert events_of(device, EventType.TIMER_FOUND)[-1].data["source"] == "remote"

    async def test_remote_deletion_clears(self, device):
        await running(device)

        await RemoteTimerMirror(device.db).set(ROOM, None)
        await device.settle()

        assert device.engine.get_timer() is None
        assert device.center.pending_identifiers == []
        assert await device.local_store.load() is None
        assert events_of(device, EventType.TIMER_STOPPED)[-1].data["source"] == "remote"

    async def test_own_echo_is_ignored(self, device):
        await running(device)
        assert events_of(device, EventType.TIMER_FOUND) == []


@pytest.mark.asyncio
class TestCheckActiveTimers:
    """Tests for rebuilding the active-timer map."""

    async def test_collects_effective_timers(self, device):
        # no watch attached: the map is built by the check alone
        current, stale = timer_ending(600), timer_ending(-5)
        await device.engine.remote.set(ROOM, current)
        await device.engine.remote.set(OTHER_ROOM, stale)

        found = await device.engine.check_active_timers([ROOM, OTHER_ROOM])

        assert list(found) == [ROOM]
        assert device.engine.foreground_timer.id == current.id
        assert (await device.local_store.load(room_id=ROOM)).id == current.id
        assert events_of(device, EventType.TIMER_FOUND)[-1].data["source"] == "check"

    async def test_failed_room_keeps_entry(self, device):
        timer = await running(device)
        device.db.set_failure("get")

        found = await device.engine.check_active_timers([ROOM, OTHER_ROOM])
        assert found[ROOM].id == timer.id

    async def test_missing_foreground_timer_cleared(self, device):
        await running(device)
        await device.engine.remote.set(ROOM, None)
        await device.settle()

        assert await device.engine.check_active_timers([ROOM]) == {}
        assert device.engine.foreground_timer is None

    async def test_overlapping_calls_coalesced(self, device):
        await device.engine.start_session()
        await device.engine.remote.set(ROOM, timer_ending(600))

        results = await asyncio.gather(
            device.engine.check_active_timers([ROOM]),
            device.engine.check_active_timers([ROOM]),
        )

        assert None in results
        assert [r for r in results if r is not None][0][ROOM].end_time == T0 + timedelta(seconds=600)


@pytest.mark.asyncio
class TestConsumptionLog:
    """Tests for auto start and auto stop driven by the log."""

    async def test_logs_changed_starts_timer(self, device):
        await device.engine.start_session()
        timer = await device.engine.on_logs_changed()
        assert timer is not None
        assert device.engine.phase() is TimerPhase.RUNNING

    async def test_logs_changed_keeps_running_timer(self, device):
        timer = await running(device)
        assert (await device.engine.on_logs_changed()).id == timer.id

    async def test_all_logged_stops_timer(self, device):
        await running(device)
        device.log_all()

        assert await device.engine.on_logs_changed() is None
        assert await device.engine.remote.get(ROOM) is None
        assert EventType.TIMER_STOPPED in device.event_types()

    async def test_item_logged_restarts_for_remaining(self, device):
        first = await running(device)
        logged, left = device.items[ROOM]
        device.session.log_item(ROOM, logged)

        timer = await device.engine.on_item_logged(logged)

        assert timer.id != first.id
        assert timer.associated_item_ids == [left]

    async def test_last_item_logged_stops(self, device):
        await running(device)
        device.log_all()

        assert await device.engine.on_item_logged(device.items[ROOM][-1]) is None
        assert device.engine.get_timer() is None

    async def test_non_treatment_item_ignored(self, device):
        timer = await running(device)
        assert (await device.engine.on_item_logged(uuid4())).id == timer.id
        assert (await device.engine.on_item_unlogged(uuid4())).id == timer.id

    async def test_item_unlogged_starts_fresh(self, device):
        await device.engine.start_session()
        device.log_all()
        item = device.items[ROOM][0]
        device.session.unlog_item(ROOM, item)

        timer = await device.engine.on_item_unlogged(item)
        assert timer.associated_item_ids == [item]


@pytest.mark.asyncio
class TestTick:
    """Tests for the foreground countdown."""

    async def test_progress_then_expiry(self, device, clock):
        await running(device, duration=10)

        clock.advance(5)
        assert await device.engine.tick() == 5
        assert device.surface.state_for(ROOM).is_active is True

        clock.advance(3)
        assert await device.engine.tick() == 2
        assert device.surface.state_for(ROOM).is_active is False

        clock.advance(2)
        assert await device.engine.tick() is None
        assert device.engine.get_timer() is None
        assert await device.engine.remote.get(ROOM) is None
        assert device.event_types()[-2:] == [EventType.TIMER_EXPIRED, EventType.TIMER_STOPPED]

    async def test_tick_writes_debounced_save_after_window(self, device, clock):
        """A remote timer adopted inside the save window reaches disk on a later tick."""
        first = await running(device)
        replacement = timer_ending(1200)
        await RemoteTimerMirror(device.db).set(ROOM, replacement)
        await device.settle()

        assert device.engine.foreground_timer.id == replacement.id
        assert device.local_store.has_pending_save
        assert (await device.local_store.load(room_id=ROOM)).id == first.id

        clock.advance(10)
        await device.engine.tick()

        assert not device.local_store.has_pending_save
        assert (await device.local_store.load(room_id=ROOM)).id == replacement.id

    async def test_tick_inside_window_keeps_save_pending(self, device, clock):
        await running(device)
        await RemoteTimerMirror(device.db).set(ROOM, timer_ending(1200))
        await device.settle()

        clock.advance(1)
        await device.engine.tick()
        assert device.local_store.has_pending_save

    async def test_tick_without_timer(self, device):
        await device.engine.start_session()
        assert await device.engine.tick() is None

    async def test_phase_and_remaining(self, device, clock):
        await running(device)
        assert device.engine.phase() is TimerPhase.RUNNING
        assert device.engine.remaining() == 900

        clock.advance(1000)
        assert device.engine.phase() is TimerPhase.EXPIRED_PENDING_CLEANUP
        assert device.engine.remaining() == 0

        await device.engine.tick()
        assert device.engine.phase() is TimerPhase.NO_TIMER
        assert device.engine.remaining() is None


@pytest.mark.asyncio
class TestOverride:
    """Tests for the admin duration override."""

    async def test_override_shortens_timer(self, device):
        await device.engine.start_session()
        await device.engine.update_override(True, 60, actor_is_super_admin=True)
        await device.settle()

        assert device.engine.effective_duration() == 60
        timer = await device.engine.start()
        assert timer.end_time == T0 + timedelta(seconds=60)
        assert len(events_of(device, EventType.OVERRIDE_CHANGED)) == 1

    async def test_disabled_override_uses_default(self, device):
        await device.engine.start_session()
        await device.engine.update_override(False, 60, actor_is_super_admin=True)
        assert device.engine.effective_duration() == 900

    async def test_non_admin_denied(self, device):
        await device.engine.start_session()
        with pytest.raises(PermissionDeniedError):
            await device.engine.update_override(True, 60)
        assert device.engine.effective_duration() == 900

    async def test_no_room_selected(self, device):
        device.session.set_current_room(None)
        with pytest.raises(ValidationError):
            await device.engine.update_override(True, 60, actor_is_super_admin=True)


@pytest.mark.asyncio
class TestNotificationActions:
    """Tests for responses to delivered notifications."""

    async def test_snooze_action(self, device, clock):
        timer = await running(device)
        clock.advance(900)

        handled = await device.engine.handle_notification_action(
            ROOM, NotificationAction.SNOOZE, timer.notification_ids[0]
        )

        assert handled is True
        snoozed = device.engine.get_timer()
        assert snoozed.id == timer.id
        assert snoozed.end_time == T0 + timedelta(seconds=1200)

    @pytest.mark.parametrize("action", ["GO_TO_ROOM", OS_DEFAULT_ACTION_IDENTIFIER])
    async def test_open_room_actions(self, device, action):
        await device.engine.start_session()
        timer = await device.engine.start(OTHER_ROOM)

        assert await device.engine.handle_notification_action(OTHER_ROOM, action, timer.notification_ids[0])
        assert device.engine.current_room_id == OTHER_ROOM
        assert device.engine.get_timer(OTHER_ROOM) is None
        assert await device.engine.remote.get(OTHER_ROOM) is None

    async def test_non_timer_notification_ignored(self, device):
        await running(device)
        assert await device.engine.handle_notification_action(ROOM, "SNOOZE", "daily_reminder_1") is False

    async def test_unknown_action(self, device):
        await running(device)
        assert await device.engine.handle_notification_action(ROOM, "DISMISS") is False


@pytest.mark.asyncio
class TestLifecycle:
    """Tests for session start/end and resume."""

    async def test_resume_reschedules_lost_notifications(self, device, clock):
        timer = await running(device)
        await device.center.remove(device.center.pending_identifiers)
        clock.advance(100)

        countdowns = await device.engine.resume()

        assert countdowns == {ROOM: 800}
        assert await device.scheduler.has_pending(timer.id, ROOM)
        assert device.engine.get_timer().end_time == timer.end_time

    async def test_resume_keeps_pending_notifications(self, device, clock):
        timer = await running(device)
        await device.engine.resume()
        assert sorted(device.center.pending_identifiers) == sorted(timer.notification_ids)
        assert EventType.TIMER_SNOOZED not in device.event_types()

    async def test_resume_clears_expired(self, device, clock):
        await running(device)
        clock.advance(1000)

        assert await device.engine.resume() == {}
        assert device.engine.get_timer() is None

    async def test_session_with_ticker(self, device):
        await device.engine.start_session(run_ticker=True)
        assert device.engine.ticker.running
        assert device.engine.context.is_open

        await device.engine.end_session()
        assert not device.engine.ticker.running
        assert not device.engine.context.is_open
        assert device.db.subscription_count == 0

    async def test_end_session_flushes_pending_save(self, device):
        await running(device)
        incoming = timer_ending(700)
        await RemoteTimerMirror(device.db).set(ROOM, incoming)
        await device.settle()

        await device.engine.end_session()

        assert not device.local_store.has_pending_save
        assert (await device.local_store.load(room_id=ROOM)).id == incoming.id
        assert device.engine.active_timers == {}

    async def test_from_config(self, db, center, surface, clock, tmp_path):
        session = StaticSessionContext(clock=clock)
        session.add_room(ROOM, "Sam")
        session.add_item(ROOM)
        session.set_current_room(ROOM)

        config = TipsConfig(storage=StorageConfig(directory=str(tmp_path / "state")))
        engine = TimerReconciliationEngine.from_config(config, session, db, center, surface, clock=clock)

        await engine.start_session()
        timer = await engine.start()

        assert engine.activity is not None
        assert (await engine.local_store.load(room_id=ROOM)).id == timer.id
        assert (tmp_path / "state" / "timer_state.json").exists()
        await engine.end_session()
