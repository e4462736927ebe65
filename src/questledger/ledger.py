"""Quest ledger — composition root for one quest's claim and fee accounting.

A quest is funded with reward asset held at its own address. Receipt
holders claim a fixed reward per receipt, once per receipt. Every claim
accrues a protocol fee that the owner withdraws separately.

Claim flow (all inside the quest lock, all-or-nothing):
    1. LifecycleStateMachine gates the claim; a quest that cannot cover
       one reward fails before the receipt lock is consulted
    2. CredentialRegistry lists the caller's receipts for this quest
    3. ClaimLedger filters out receipts that already claimed
    4. RewardAccountant computes payout and fee accrual
    5. RewardAsset pays the caller
    6. ClaimLedger and counters commit

Nothing is committed before the transfer succeeds, so a refused transfer
leaves the quest exactly as it was.

Withdrawals:
    withdraw      owner, after end_time: balance minus unwithdrawn fee
    withdraw_fee  owner, any time: outstanding_fee - fee_withdrawn
"""

from __future__ import annotations

import copy
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, FrozenSet, Iterable, Iterator, Optional

from questledger.collaborators.interfaces import CredentialRegistry, RewardAsset
from questledger.config import LedgerParams
from questledger.engine.accountant import RewardAccountant
from questledger.engine.claim_ledger import ClaimLedger
from questledger.engine.lifecycle import LifecycleStateMachine
from questledger.errors import (
    AlreadyClaimed,
    AmountExceedsBalance,
    NoTokensToClaim,
    NoWithdrawDuringClaim,
    NotOwner,
    TransferFailed,
)
from questledger.models.quest import (
    ClaimReceipt,
    LifecycleState,
    QuestParams,
    QuestState,
    Withdrawal,
)

logger = logging.getLogger(__name__)


def utc_timestamp() -> int:
    return int(datetime.now(timezone.utc).timestamp())


class QuestLedger:
    """One quest's accounting, serialized behind a single lock.

    Usage:
        quest = QuestLedger.create(
            quest_id="q1", owner="sponsor", address="quest:q1",
            reward_asset=token, credentials=receipts,
            total_budget=1000, reward_per_credential=10, fee_rate_bps=2000,
            start_time=now + 1000, end_time=now + 10000, now=now,
        )
        quest.start("sponsor")
        receipt = quest.claim("alice", now=now + 1000 + 86400)
        quest.withdraw_fee("sponsor")
    """

    def __init__(
        self,
        params: QuestParams,
        credentials: CredentialRegistry,
        reward_asset: RewardAsset,
        state: Optional[QuestState] = None,
        claimed_ids: Iterable[int] = (),
        ledger_params: Optional[LedgerParams] = None,
    ) -> None:
        if ledger_params is None:
            ledger_params = LedgerParams()
        if state is None:
            state = QuestState()

        self._params = params
        self._credentials = credentials
        self._asset = reward_asset
        self._state = copy.copy(state)
        self._claims = ClaimLedger(claimed_ids)
        self._accountant = RewardAccountant(
            reward_per_credential=params.reward_per_credential,
            fee_rate_bps=params.fee_rate_bps,
            total_budget=params.total_budget,
        )
        self._lifecycle = LifecycleStateMachine(
            start_time=params.start_time,
            end_time=params.end_time,
            claim_lock_seconds=ledger_params.claim_lock_seconds,
            has_started=state.has_started,
            is_paused=state.is_paused,
        )
        self._lock = threading.RLock()

    @classmethod
    def create(
        cls,
        quest_id: str,
        owner: str,
        address: str,
        reward_asset: RewardAsset,
        credentials: CredentialRegistry,
        total_budget: int,
        reward_per_credential: int,
        fee_rate_bps: int,
        start_time: int,
        end_time: int,
        allow_list_ref: str = "",
        now: Optional[int] = None,
        ledger_params: Optional[LedgerParams] = None,
    ) -> QuestLedger:
        """Create a new quest, validating every fixed parameter.

        Raises:
            ValueError: malformed parameters.
            StartTimeInPast / EndTimeInPast: schedule not in the future.
            EndBeforeStart: only with ``require_end_after_start``.
        """
        if ledger_params is None:
            ledger_params = LedgerParams()
        if now is None:
            now = utc_timestamp()
        if not quest_id:
            raise ValueError("quest_id must be non-empty")
        if not owner:
            raise ValueError("owner must be non-empty")
        if not address:
            raise ValueError("address must be non-empty")
        if total_budget < 0:
            raise ValueError("total_budget must be >= 0")
        if reward_per_credential <= 0:
            raise ValueError("reward_per_credential must be positive")
        if not (0 <= fee_rate_bps <= ledger_params.max_fee_bps):
            raise ValueError(
                f"fee_rate_bps must be in [0, {ledger_params.max_fee_bps}], "
                f"got {fee_rate_bps}"
            )
        LifecycleStateMachine.validate_schedule(
            start_time, end_time, now,
            require_end_after_start=ledger_params.require_end_after_start,
        )

        params = QuestParams(
            quest_id=quest_id,
            owner=owner,
            address=address,
            reward_asset_ref=reward_asset.asset_ref,
            total_budget=total_budget,
            reward_per_credential=reward_per_credential,
            fee_rate_bps=fee_rate_bps,
            start_time=start_time,
            end_time=end_time,
            created_at=now,
        )
        quest = cls(
            params, credentials, reward_asset,
            state=QuestState(allow_list_ref=allow_list_ref),
            ledger_params=ledger_params,
        )
        logger.info(
            "quest %s created: budget=%d reward=%d fee_bps=%d window=[%d, %d)",
            quest_id, total_budget, reward_per_credential, fee_rate_bps,
            start_time, end_time,
        )
        return quest

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def params(self) -> QuestParams:
        return self._params

    @property
    def quest_id(self) -> str:
        return self._params.quest_id

    @property
    def owner(self) -> str:
        return self._params.owner

    @property
    def address(self) -> str:
        return self._params.address

    @property
    def start_time(self) -> int:
        return self._params.start_time

    @property
    def end_time(self) -> int:
        return self._params.end_time

    @property
    def total_amount(self) -> int:
        return self._params.total_budget

    @property
    def has_started(self) -> bool:
        return self._lifecycle.has_started

    @property
    def is_paused(self) -> bool:
        return self._lifecycle.is_paused

    @property
    def allow_list(self) -> str:
        return self._state.allow_list_ref

    @property
    def claimed_count(self) -> int:
        return self._state.claimed_count

    @property
    def outstanding_fee(self) -> int:
        return self._state.outstanding_fee

    @property
    def fee_withdrawn(self) -> int:
        return self._state.fee_withdrawn

    @property
    def unwithdrawn_fee(self) -> int:
        return self._state.unwithdrawn_fee

    @property
    def reward_asset(self) -> RewardAsset:
        return self._asset

    def is_claimed(self, credential_id: int) -> bool:
        return self._claims.is_claimed(credential_id)

    def claimed_ids(self) -> FrozenSet[int]:
        with self._lock:
            return self._claims.claimed_ids()

    def balance(self) -> int:
        """Live reward-asset balance held at the quest address."""
        return self._asset.balance_of(self._params.address)

    def lifecycle_state(self, now: Optional[int] = None) -> LifecycleState:
        return self._lifecycle.state(utc_timestamp() if now is None else now)

    def claiming_allowed(self, now: Optional[int] = None) -> bool:
        return self._lifecycle.claiming_allowed(utc_timestamp() if now is None else now)

    @contextmanager
    def transaction(self) -> Iterator[QuestLedger]:
        """Hold the quest lock across an operation and its bookkeeping."""
        with self._lock:
            yield self

    def state_copy(self) -> QuestState:
        """A consistent copy of the mutable state, for persistence."""
        with self._lock:
            return copy.copy(self._state)

    def snapshot(self, now: Optional[int] = None) -> Dict[str, Any]:
        with self._lock:
            return {
                "quest_id": self._params.quest_id,
                "owner": self._params.owner,
                "address": self._params.address,
                "reward_asset": self._params.reward_asset_ref,
                "state": self.lifecycle_state(now).value,
                "has_started": self.has_started,
                "is_paused": self.is_paused,
                "start_time": self._params.start_time,
                "end_time": self._params.end_time,
                "allow_list": self._state.allow_list_ref,
                "total_amount": self._params.total_budget,
                "reward_per_credential": self._params.reward_per_credential,
                "fee_rate_bps": self._params.fee_rate_bps,
                "claimed_count": self._state.claimed_count,
                "total_paid": self._state.total_paid,
                "outstanding_fee": self._state.outstanding_fee,
                "fee_withdrawn": self._state.fee_withdrawn,
                "principal_withdrawn": self._state.principal_withdrawn,
                "balance": self.balance(),
            }

    # ------------------------------------------------------------------
    # Owner operations
    # ------------------------------------------------------------------

    def start(self, caller: str, now: Optional[int] = None) -> None:
        with self._lock:
            self._require_owner(caller)
            self._lifecycle.start()
            self._state.has_started = True
            self._state.started_at = utc_timestamp() if now is None else now
        logger.info("quest %s started", self.quest_id)

    def pause(self, caller: str) -> None:
        with self._lock:
            self._require_owner(caller)
            self._lifecycle.pause()
            self._state.is_paused = True
        logger.info("quest %s paused", self.quest_id)

    def unpause(self, caller: str) -> None:
        with self._lock:
            self._require_owner(caller)
            self._lifecycle.unpause()
            self._state.is_paused = False
        logger.info("quest %s unpaused", self.quest_id)

    def set_allow_list(self, caller: str, allow_list_ref: str) -> None:
        with self._lock:
            self._require_owner(caller)
            self._state.allow_list_ref = allow_list_ref

    def withdraw(self, caller: str, now: Optional[int] = None) -> Withdrawal:
        """Drain remaining principal to the owner once the quest has ended.

        Leaves exactly the unwithdrawn fee in the quest's balance (or the
        whole balance, if that is smaller).
        """
        if now is None:
            now = utc_timestamp()
        with self._lock:
            self._require_owner(caller)
            if not self._lifecycle.withdraw_allowed(now):
                raise NoWithdrawDuringClaim(
                    f"Withdraw opens at end_time {self._params.end_time}, now is {now}"
                )
            amount = max(0, self.balance() - self._state.unwithdrawn_fee)
            self._pay(self._params.owner, amount)
            self._state.principal_withdrawn += amount
            remaining = self.balance()
        logger.info("quest %s principal withdrawn: %d", self.quest_id, amount)
        return Withdrawal(
            quest_id=self.quest_id,
            recipient=self._params.owner,
            amount=amount,
            kind="principal",
            withdrawn_at=now,
            remaining_balance=remaining,
        )

    def withdraw_fee(self, caller: str, now: Optional[int] = None) -> Withdrawal:
        """Pay out fee accrued since the last fee withdrawal.

        Nothing newly accrued is a silent success with amount 0.
        """
        if now is None:
            now = utc_timestamp()
        with self._lock:
            self._require_owner(caller)
            amount = self._state.unwithdrawn_fee
            self._pay(self._params.owner, amount)
            self._state.fee_withdrawn = self._state.outstanding_fee
            remaining = self.balance()
        logger.info("quest %s fee withdrawn: %d", self.quest_id, amount)
        return Withdrawal(
            quest_id=self.quest_id,
            recipient=self._params.owner,
            amount=amount,
            kind="fee",
            withdrawn_at=now,
            remaining_balance=remaining,
        )

    # ------------------------------------------------------------------
    # Claim
    # ------------------------------------------------------------------

    def claim(self, caller: str, now: Optional[int] = None) -> ClaimReceipt:
        """Pay the caller for every receipt of this quest they hold unclaimed.

        Raises:
            NotStarted, QuestPaused, ClaimWindowNotStarted: lifecycle gate.
            AmountExceedsBalance: the quest cannot cover one reward.
            NoTokensToClaim: the receipt lock has not elapsed.
            NoTokensToClaim: the caller holds no receipts for this quest.
            AlreadyClaimed: every receipt the caller holds has claimed.
            AmountExceedsBalance: payout does not fit balance or budget.
            TransferFailed: the reward asset refused the payment.
        """
        if now is None:
            now = utc_timestamp()
        with self._lock:
            self._lifecycle.check_window_open(now)
            if self.balance() - self._state.unwithdrawn_fee < self._params.reward_per_credential:
                raise AmountExceedsBalance(
                    f"Quest {self.quest_id} cannot cover a single reward of "
                    f"{self._params.reward_per_credential}"
                )
            self._lifecycle.check_lock_elapsed(now)

            owned = frozenset(
                self._credentials.owned_credentials(caller, self._params.quest_id)
            )
            if not owned:
                raise NoTokensToClaim(
                    f"{caller} holds no receipts for quest {self.quest_id}"
                )
            fresh = self._claims.unclaimed_subset_of(owned)
            if not fresh:
                raise AlreadyClaimed(
                    f"All {len(owned)} receipt(s) held by {caller} have already claimed"
                )

            available = self.balance() - self._state.unwithdrawn_fee
            settlement = self._accountant.settle(
                len(fresh),
                available_balance=available,
                claimed_so_far=self._state.claimed_count,
            )

            self._pay(caller, settlement.payout)

            self._claims.mark_claimed(fresh)
            self._state.claimed_count += settlement.credential_count
            self._state.total_paid += settlement.payout
            self._state.outstanding_fee += settlement.fee_delta

        logger.info(
            "quest %s: %s claimed %d receipt(s), payout=%d fee=%d",
            self.quest_id, caller, settlement.credential_count,
            settlement.payout, settlement.fee_delta,
        )
        return ClaimReceipt(
            quest_id=self.quest_id,
            claimant=caller,
            credential_ids=tuple(sorted(fresh)),
            payout=settlement.payout,
            fee_delta=settlement.fee_delta,
            claimed_at=now,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_owner(self, caller: str) -> None:
        if caller != self._params.owner:
            raise NotOwner(f"{caller} is not the owner of quest {self.quest_id}")

    def _pay(self, to: str, amount: int) -> None:
        """Transfer from the quest address; zero amounts are not sent."""
        if amount == 0:
            return
        if not self._asset.transfer(self._params.address, to, amount):
            raise TransferFailed(
                f"Transfer of {amount} {self._params.reward_asset_ref} "
                f"from {self._params.address} to {to} failed"
            )
