"""Tests for the quest lifecycle state machine — proves claim gating order."""

import pytest

from questledger.engine.lifecycle import LifecycleStateMachine
from questledger.errors import (
    AlreadyStarted,
    ClaimWindowNotStarted,
    EndBeforeStart,
    EndTimeInPast,
    NoTokensToClaim,
    NotStarted,
    QuestPaused,
    StartTimeInPast,
)
from questledger.models.quest import LifecycleState


START = 1_000
END = 5_000
LOCK = 100


def _machine(**kwargs) -> LifecycleStateMachine:
    return LifecycleStateMachine(START, END, claim_lock_seconds=LOCK, **kwargs)


class TestSchedule:
    def test_valid(self) -> None:
        LifecycleStateMachine.validate_schedule(START, END, created_at=0)

    def test_start_in_past(self) -> None:
        with pytest.raises(StartTimeInPast):
            LifecycleStateMachine.validate_schedule(START, END, created_at=START)

    def test_end_in_past(self) -> None:
        with pytest.raises(EndTimeInPast):
            LifecycleStateMachine.validate_schedule(START, 500, created_at=600)

    def test_start_checked_before_end(self) -> None:
        with pytest.raises(StartTimeInPast):
            LifecycleStateMachine.validate_schedule(10, 10, created_at=20)

    def test_end_before_start_only_when_required(self) -> None:
        LifecycleStateMachine.validate_schedule(END, START, created_at=0)
        with pytest.raises(EndBeforeStart):
            LifecycleStateMachine.validate_schedule(
                END, START, created_at=0, require_end_after_start=True,
            )


class TestTransitions:
    def test_start_once(self) -> None:
        m = _machine()
        m.start()
        assert m.has_started
        with pytest.raises(AlreadyStarted):
            m.start()

    def test_pause_idempotent(self) -> None:
        m = _machine()
        m.pause()
        m.pause()
        assert m.is_paused
        m.unpause()
        m.unpause()
        assert not m.is_paused

    def test_state(self) -> None:
        m = _machine()
        assert m.state(START) == LifecycleState.UNSTARTED
        m.start()
        assert m.state(START) == LifecycleState.ACTIVE
        m.pause()
        assert m.state(START) == LifecycleState.PAUSED
        assert m.state(END) == LifecycleState.ENDED


class TestClaimGate:
    def test_not_started_first(self) -> None:
        m = _machine(is_paused=True)
        with pytest.raises(NotStarted):
            m.check_claimable(0)

    def test_paused_before_window(self) -> None:
        m = _machine(has_started=True, is_paused=True)
        with pytest.raises(QuestPaused):
            m.check_claimable(0)

    def test_window_not_started(self) -> None:
        m = _machine(has_started=True)
        with pytest.raises(ClaimWindowNotStarted):
            m.check_claimable(START - 1)

    def test_lock_from_start_time(self) -> None:
        m = _machine(has_started=True)
        with pytest.raises(NoTokensToClaim):
            m.check_claimable(START)
        with pytest.raises(NoTokensToClaim):
            m.check_claimable(START + LOCK - 1)
        m.check_claimable(START + LOCK)
        assert m.claim_opens_at == START + LOCK

    def test_window_open_before_lock_elapses(self) -> None:
        m = _machine(has_started=True)
        m.check_window_open(START)
        with pytest.raises(NoTokensToClaim):
            m.check_lock_elapsed(START)
        m.check_lock_elapsed(START + LOCK)

    def test_claiming_allowed_matches_gate(self) -> None:
        m = _machine(has_started=True)
        assert not m.claiming_allowed(START + LOCK - 1)
        assert m.claiming_allowed(START + LOCK)
        assert m.claiming_allowed(END + 1)

    def test_withdraw_allowed_from_end(self) -> None:
        m = _machine()
        assert not m.withdraw_allowed(END - 1)
        assert m.withdraw_allowed(END)
