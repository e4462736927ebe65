"""Quest models — fixed parameters, mutable accounting state, settlements.

All amounts are integers in the reward asset's base units. No floats and
no Decimal: the fee is floored per claim and that rounding must be exact.

Invariants carried by these models:
- claimed_count * reward_per_credential <= total_budget
- fee_withdrawn <= outstanding_fee
- has_started only ever moves False -> True
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional, Tuple


BPS_DENOMINATOR = 10_000


class LifecycleState(str, enum.Enum):
    """Observable lifecycle state of a quest.

    State machine:
        UNSTARTED -> ACTIVE <-> PAUSED
        any state -> ENDED   (derived: now >= end_time)
    """
    UNSTARTED = "unstarted"
    ACTIVE = "active"
    PAUSED = "paused"
    ENDED = "ended"


@dataclass(frozen=True)
class QuestParams:
    """Parameters fixed when the quest is created."""
    quest_id: str
    owner: str
    address: str
    reward_asset_ref: str
    total_budget: int
    reward_per_credential: int
    fee_rate_bps: int
    start_time: int
    end_time: int
    created_at: int

    @property
    def total_fee_budget(self) -> int:
        """Fee reserved on top of the budget when the quest is fully claimed."""
        return self.total_budget * self.fee_rate_bps // BPS_DENOMINATOR

    @property
    def max_claims(self) -> int:
        """Number of credentials the budget can pay for."""
        return self.total_budget // self.reward_per_credential


@dataclass
class QuestState:
    """Mutable accounting state of a quest.

    Every field is authoritative and persisted as-is; nothing here is
    recomputed from other fields on load.
    """
    has_started: bool = False
    is_paused: bool = False
    allow_list_ref: str = ""
    claimed_count: int = 0
    total_paid: int = 0
    outstanding_fee: int = 0
    fee_withdrawn: int = 0
    principal_withdrawn: int = 0
    started_at: Optional[int] = None

    @property
    def unwithdrawn_fee(self) -> int:
        return self.outstanding_fee - self.fee_withdrawn


@dataclass(frozen=True)
class Settlement:
    """Result of settling a batch of newly claimed credentials.

    The fee delta is never paid out at claim time; it only grows the
    quest's fee obligation.
    """
    credential_count: int
    payout: int
    fee_delta: int


@dataclass(frozen=True)
class ClaimReceipt:
    """Published with every successful claim."""
    quest_id: str
    claimant: str
    credential_ids: Tuple[int, ...]
    payout: int
    fee_delta: int
    claimed_at: int


@dataclass(frozen=True)
class Withdrawal:
    """A principal or fee withdrawal to the owner."""
    quest_id: str
    recipient: str
    amount: int
    kind: str
    withdrawn_at: int
    remaining_balance: int = field(default=0)
