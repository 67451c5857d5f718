"""
Tests for the schedule status lifecycle.
"""
from datetime import datetime, timedelta

import pytest

from app.core.exceptions import IllegalTransitionError, ValidationError
from app.models.schedule import ScheduleStatus
from app.services.scheduling.models import ScheduleState
from app.services.scheduling.status import (
    ALLOWED_TRANSITIONS,
    TERMINAL_STATUSES,
    ScheduleStatusMachine,
)

SCHEDULED_DEPARTURE = datetime(2024, 1, 1, 8, 0)
NOW = datetime(2024, 1, 1, 8, 5)


@pytest.fixture
def machine():
    return ScheduleStatusMachine()


def state(status, actual_departure=None, actual_arrival=None):
    return ScheduleState(
        status=status,
        scheduled_departure=SCHEDULED_DEPARTURE,
        actual_departure=actual_departure,
        actual_arrival=actual_arrival,
    )


class TestTransitionTable:
    """Test which transitions are allowed."""

    @pytest.mark.parametrize("current,requested", [
        (ScheduleStatus.SCHEDULED, ScheduleStatus.RUNNING),
        (ScheduleStatus.SCHEDULED, ScheduleStatus.DELAYED),
        (ScheduleStatus.SCHEDULED, ScheduleStatus.CANCELLED),
        (ScheduleStatus.RUNNING, ScheduleStatus.DELAYED),
        (ScheduleStatus.RUNNING, ScheduleStatus.COMPLETED),
        (ScheduleStatus.RUNNING, ScheduleStatus.CANCELLED),
        (ScheduleStatus.DELAYED, ScheduleStatus.RUNNING),
        (ScheduleStatus.DELAYED, ScheduleStatus.COMPLETED),
        (ScheduleStatus.DELAYED, ScheduleStatus.CANCELLED),
    ])
    def test_allowed(self, machine, current, requested):
        assert machine.can_transition(current, requested)

    @pytest.mark.parametrize("current,requested", [
        (ScheduleStatus.SCHEDULED, ScheduleStatus.COMPLETED),
        (ScheduleStatus.SCHEDULED, ScheduleStatus.SCHEDULED),
        (ScheduleStatus.RUNNING, ScheduleStatus.SCHEDULED),
        (ScheduleStatus.DELAYED, ScheduleStatus.SCHEDULED),
    ])
    def test_not_allowed(self, machine, current, requested):
        assert not machine.can_transition(current, requested)

    def test_terminal_statuses(self):
        assert TERMINAL_STATUSES == {ScheduleStatus.COMPLETED, ScheduleStatus.CANCELLED}

    @pytest.mark.parametrize("terminal", [ScheduleStatus.COMPLETED, ScheduleStatus.CANCELLED])
    def test_terminal_statuses_have_no_exits(self, machine, terminal):
        for requested in ScheduleStatus:
            with pytest.raises(IllegalTransitionError):
                machine.apply_transition(state(terminal), requested, now=NOW)

    def test_every_status_is_listed(self):
        assert set(ALLOWED_TRANSITIONS) == set(ScheduleStatus)


class TestRunning:
    """Test transitions into running."""

    def test_defaults_departure_to_now(self, machine):
        change = machine.apply_transition(state(ScheduleStatus.SCHEDULED), ScheduleStatus.RUNNING, now=NOW)
        assert change.status == ScheduleStatus.RUNNING
        assert change.actual_departure == NOW
        assert change.actual_arrival is None
        assert change.is_cancelled is False

    def test_uses_provided_departure(self, machine):
        departure = SCHEDULED_DEPARTURE + timedelta(minutes=2)
        change = machine.apply_transition(
            state(ScheduleStatus.SCHEDULED), ScheduleStatus.RUNNING,
            actual_departure=departure, now=NOW,
        )
        assert change.actual_departure == departure

    def test_departure_on_schedule_is_allowed(self, machine):
        change = machine.apply_transition(
            state(ScheduleStatus.SCHEDULED), ScheduleStatus.RUNNING,
            actual_departure=SCHEDULED_DEPARTURE, now=NOW,
        )
        assert change.actual_departure == SCHEDULED_DEPARTURE

    def test_early_departure_is_rejected(self, machine):
        with pytest.raises(ValidationError) as exc_info:
            machine.apply_transition(
                state(ScheduleStatus.SCHEDULED), ScheduleStatus.RUNNING,
                actual_departure=SCHEDULED_DEPARTURE - timedelta(minutes=1), now=NOW,
            )
        assert exc_info.value.field == "actualDeparture"

    def test_tolerance_allows_early_departure(self):
        machine = ScheduleStatusMachine(departure_tolerance=timedelta(minutes=5))
        departure = SCHEDULED_DEPARTURE - timedelta(minutes=5)
        change = machine.apply_transition(
            state(ScheduleStatus.SCHEDULED), ScheduleStatus.RUNNING,
            actual_departure=departure, now=NOW,
        )
        assert change.actual_departure == departure

    def test_resuming_from_delay_keeps_departure(self, machine):
        departure = SCHEDULED_DEPARTURE + timedelta(minutes=1)
        change = machine.apply_transition(
            state(ScheduleStatus.DELAYED, actual_departure=departure),
            ScheduleStatus.RUNNING,
            now=NOW + timedelta(minutes=30),
        )
        assert change.actual_departure == departure


class TestCompleted:
    """Test transitions into completed."""

    def test_defaults_arrival_to_now(self, machine):
        departure = SCHEDULED_DEPARTURE
        change = machine.apply_transition(
            state(ScheduleStatus.RUNNING, actual_departure=departure),
            ScheduleStatus.COMPLETED,
            now=NOW,
        )
        assert change.status == ScheduleStatus.COMPLETED
        assert change.actual_departure == departure
        assert change.actual_arrival == NOW

    def test_arrival_equal_to_departure_is_rejected(self, machine):
        departure = SCHEDULED_DEPARTURE + timedelta(minutes=3)
        with pytest.raises(ValidationError) as exc_info:
            machine.apply_transition(
                state(ScheduleStatus.RUNNING, actual_departure=departure),
                ScheduleStatus.COMPLETED,
                actual_arrival=departure,
                now=NOW,
            )
        assert exc_info.value.field == "actualArrival"

    def test_completing_without_known_departure(self, machine):
        arrival = SCHEDULED_DEPARTURE + timedelta(hours=1)
        change = machine.apply_transition(
            state(ScheduleStatus.DELAYED), ScheduleStatus.COMPLETED,
            actual_arrival=arrival, now=NOW,
        )
        assert change.actual_departure is None
        assert change.actual_arrival == arrival


class TestCancelled:
    """Test cancellation."""

    def test_cancel_sets_flag(self, machine):
        change = machine.apply_transition(state(ScheduleStatus.SCHEDULED), ScheduleStatus.CANCELLED, now=NOW)
        assert change.status == ScheduleStatus.CANCELLED
        assert change.is_cancelled is True
        assert change.actual_departure is None

    def test_cancel_keeps_actual_times(self, machine):
        departure = SCHEDULED_DEPARTURE + timedelta(minutes=1)
        change = machine.apply_transition(
            state(ScheduleStatus.RUNNING, actual_departure=departure),
            ScheduleStatus.CANCELLED,
            now=NOW,
        )
        assert change.actual_departure == departure

    def test_cancelled_cannot_run(self, machine):
        cancelled = machine.apply_transition(state(ScheduleStatus.SCHEDULED), ScheduleStatus.CANCELLED, now=NOW)
        current = state(cancelled.status)
        with pytest.raises(IllegalTransitionError) as exc_info:
            machine.apply_transition(current, ScheduleStatus.RUNNING, now=NOW)
        assert exc_info.value.current == "cancelled"
        assert exc_info.value.requested == "running"
        assert current.status == ScheduleStatus.CANCELLED


def test_rejected_transition_leaves_state_untouched(machine):
    departure = SCHEDULED_DEPARTURE + timedelta(minutes=1)
    arrival = SCHEDULED_DEPARTURE + timedelta(hours=2)
    current = state(ScheduleStatus.COMPLETED, actual_departure=departure, actual_arrival=arrival)
    with pytest.raises(IllegalTransitionError):
        machine.apply_transition(current, ScheduleStatus.RUNNING, now=NOW)
    assert current == state(ScheduleStatus.COMPLETED, actual_departure=departure, actual_arrival=arrival)


def test_accepts_status_strings(machine):
    change = machine.apply_transition(state(ScheduleStatus.SCHEDULED), "delayed", now=NOW)
    assert change.status == ScheduleStatus.DELAYED
