"""Reward accountant — computes the payout and fee accrual for a claim.

The computation is fully deterministic and integer-only:

    payout    = newly_claimed_count × reward_per_credential
    fee_delta = floor(payout × fee_rate_bps / 10000)

The fee is floored per claim, never over the aggregate. Many small claims
can therefore accrue a few base units less than the nominal rate applied
to the total; that shortfall is part of the contract, not drift.

Guards:
- the payout must fit in the quest's available balance: the live asset
  balance minus the fee already owed to the owner
- claimed_count × reward_per_credential never exceeds total_budget
"""

from __future__ import annotations

from questledger.errors import AmountExceedsBalance
from questledger.models.quest import BPS_DENOMINATOR, Settlement


class RewardAccountant:
    """Settles newly claimed credentials against a fixed reward and fee rate.

    Usage:
        accountant = RewardAccountant(reward_per_credential=10,
                                      fee_rate_bps=2000, total_budget=1000)
        settlement = accountant.settle(2, available_balance=1200, claimed_so_far=0)
        # settlement.payout == 20, settlement.fee_delta == 4
    """

    def __init__(
        self,
        reward_per_credential: int,
        fee_rate_bps: int,
        total_budget: int,
    ) -> None:
        if reward_per_credential <= 0:
            raise ValueError("reward_per_credential must be positive")
        if not (0 <= fee_rate_bps <= BPS_DENOMINATOR):
            raise ValueError(f"fee_rate_bps must be in [0, {BPS_DENOMINATOR}]")
        if total_budget < 0:
            raise ValueError("total_budget must be >= 0")
        self._reward = reward_per_credential
        self._fee_bps = fee_rate_bps
        self._budget = total_budget

    def fee_for(self, payout: int) -> int:
        """Fee owed on a single payout, rounded toward zero."""
        return payout * self._fee_bps // BPS_DENOMINATOR

    def settle(
        self,
        newly_claimed_count: int,
        available_balance: int,
        claimed_so_far: int,
    ) -> Settlement:
        """Compute the settlement for ``newly_claimed_count`` credentials.

        Args:
            newly_claimed_count: Credentials being claimed in this operation.
            available_balance: Live asset balance minus unwithdrawn fee.
            claimed_so_far: Credentials already paid by this quest.

        Raises:
            AmountExceedsBalance: the payout does not fit the available
                balance or would overrun the quest budget.
        """
        if newly_claimed_count <= 0:
            raise ValueError("newly_claimed_count must be positive")

        payout = newly_claimed_count * self._reward
        fee_delta = self.fee_for(payout)
        if payout > available_balance:
            raise AmountExceedsBalance(
                f"Payout {payout} exceeds available balance {available_balance}"
            )
        if (claimed_so_far + newly_claimed_count) * self._reward > self._budget:
            raise AmountExceedsBalance(
                f"Payout {payout} would exceed total budget {self._budget} "
                f"({claimed_so_far} credential(s) already paid)"
            )

        return Settlement(
            credential_count=newly_claimed_count,
            payout=payout,
            fee_delta=fee_delta,
        )
