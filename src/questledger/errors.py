"""Typed failure conditions for quest operations.

Every precondition violation aborts the operation with no state change and
surfaces as one of these exceptions. Each carries a stable ``code`` so the
service layer and the CLI can report the condition without string matching.
"""

from __future__ import annotations


class QuestError(Exception):
    """Base class for all quest accounting failures."""

    code = "quest_error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)


class NotOwner(QuestError):
    """Caller lacks owner privilege for an owner-only operation."""

    code = "not_owner"


class AlreadyStarted(QuestError):
    code = "already_started"


class StartTimeInPast(QuestError):
    code = "start_time_in_past"


class EndTimeInPast(QuestError):
    code = "end_time_in_past"


class EndBeforeStart(QuestError):
    """Only raised when ``require_end_after_start`` is configured."""

    code = "end_before_start"


class NotStarted(QuestError):
    code = "not_started"


class QuestPaused(QuestError):
    code = "quest_paused"


class ClaimWindowNotStarted(QuestError):
    code = "claim_window_not_started"


class NoTokensToClaim(QuestError):
    """Caller owns no receipts, or the claim lock has not yet elapsed."""

    code = "no_tokens_to_claim"


class AlreadyClaimed(QuestError):
    code = "already_claimed"


class AmountExceedsBalance(QuestError):
    code = "amount_exceeds_balance"


class NoWithdrawDuringClaim(QuestError):
    code = "no_withdraw_during_claim"


class TransferFailed(QuestError):
    """The reward asset refused a transfer."""

    code = "transfer_failed"


class UnknownQuest(QuestError):
    code = "unknown_quest"


class DuplicateQuest(QuestError):
    code = "duplicate_quest"
