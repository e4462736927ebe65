"""Quest lifecycle state machine — gates every mutating operation.

Claim gating is fail-closed and ordered: the first failing precondition
decides the error.

    1. not started            -> NotStarted
    2. paused                 -> QuestPaused
    3. now < start_time       -> ClaimWindowNotStarted
    4. now < start_time + lock -> NoTokensToClaim

The lock is measured from start_time, not from receipt mint time.
QuestLedger runs gates 1-3 and 4 separately so it can reject a drained
quest in between.

pause() and unpause() accept no-op transitions: pausing a paused quest
succeeds and leaves it paused.
"""

from __future__ import annotations

from typing import Optional

from questledger.config import CLAIM_LOCK_SECONDS
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


class LifecycleStateMachine:
    """Owns has_started, is_paused, start_time and end_time."""

    def __init__(
        self,
        start_time: int,
        end_time: int,
        claim_lock_seconds: int = CLAIM_LOCK_SECONDS,
        has_started: bool = False,
        is_paused: bool = False,
    ) -> None:
        self._start_time = start_time
        self._end_time = end_time
        self._lock_seconds = claim_lock_seconds
        self._has_started = has_started
        self._is_paused = is_paused

    @staticmethod
    def validate_schedule(
        start_time: int,
        end_time: int,
        created_at: int,
        require_end_after_start: bool = False,
    ) -> None:
        """Construction-time checks. Start and end are checked independently."""
        if start_time <= created_at:
            raise StartTimeInPast(
                f"start_time {start_time} is not after creation time {created_at}"
            )
        if end_time <= created_at:
            raise EndTimeInPast(
                f"end_time {end_time} is not after creation time {created_at}"
            )
        if require_end_after_start and end_time <= start_time:
            raise EndBeforeStart(
                f"end_time {end_time} is not after start_time {start_time}"
            )

    @property
    def start_time(self) -> int:
        return self._start_time

    @property
    def end_time(self) -> int:
        return self._end_time

    @property
    def has_started(self) -> bool:
        return self._has_started

    @property
    def is_paused(self) -> bool:
        return self._is_paused

    @property
    def claim_opens_at(self) -> int:
        return self._start_time + self._lock_seconds

    def start(self) -> None:
        if self._has_started:
            raise AlreadyStarted("Quest has already started")
        self._has_started = True

    def pause(self) -> None:
        self._is_paused = True

    def unpause(self) -> None:
        self._is_paused = False

    def check_claimable(self, now: int) -> None:
        """Raise the first failing claim precondition, if any."""
        self.check_window_open(now)
        self.check_lock_elapsed(now)

    def check_window_open(self, now: int) -> None:
        """Gates 1-3: started, unpaused, start_time reached."""
        if not self._has_started:
            raise NotStarted("Quest has not started")
        if self._is_paused:
            raise QuestPaused("Quest is paused")
        if now < self._start_time:
            raise ClaimWindowNotStarted(
                f"Claim window opens at {self._start_time}, now is {now}"
            )

    def check_lock_elapsed(self, now: int) -> None:
        if now < self.claim_opens_at:
            raise NoTokensToClaim(
                f"Receipts are locked until {self.claim_opens_at}, now is {now}"
            )

    def claiming_allowed(self, now: int) -> bool:
        return (
            self._has_started
            and not self._is_paused
            and now >= self._start_time
            and now >= self.claim_opens_at
        )

    def withdraw_allowed(self, now: int) -> bool:
        return now >= self._end_time

    def state(self, now: Optional[int] = None) -> LifecycleState:
        if now is not None and now >= self._end_time:
            return LifecycleState.ENDED
        if not self._has_started:
            return LifecycleState.UNSTARTED
        if self._is_paused:
            return LifecycleState.PAUSED
        return LifecycleState.ACTIVE
