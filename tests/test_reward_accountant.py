"""Tests for RewardAccountant — proves payout and per-claim fee flooring."""

import pytest

from questledger.engine.accountant import RewardAccountant
from questledger.errors import AmountExceedsBalance


def _accountant(reward: int = 10, fee_bps: int = 2000, budget: int = 1000) -> RewardAccountant:
    return RewardAccountant(
        reward_per_credential=reward, fee_rate_bps=fee_bps, total_budget=budget,
    )


class TestSettle:
    def test_single_credential(self) -> None:
        s = _accountant().settle(1, available_balance=1200, claimed_so_far=0)
        assert s.credential_count == 1
        assert s.payout == 10
        assert s.fee_delta == 2

    def test_fee_floored_per_claim(self) -> None:
        acct = _accountant(reward=7, fee_bps=1000)
        assert acct.settle(1, available_balance=100, claimed_so_far=0).fee_delta == 0
        assert acct.settle(2, available_balance=100, claimed_so_far=0).fee_delta == 1

    def test_zero_fee_rate(self) -> None:
        s = _accountant(fee_bps=0).settle(3, available_balance=30, claimed_so_far=0)
        assert s.payout == 30
        assert s.fee_delta == 0

    def test_payout_must_fit_available_balance(self) -> None:
        acct = _accountant()
        s = acct.settle(1, available_balance=10, claimed_so_far=0)
        assert s.payout == 10
        assert s.fee_delta == 2
        assert acct.settle(3, available_balance=30, claimed_so_far=0).payout == 30
        with pytest.raises(AmountExceedsBalance):
            acct.settle(1, available_balance=9, claimed_so_far=0)

    def test_budget_cap(self) -> None:
        acct = _accountant(budget=100)
        assert acct.settle(1, available_balance=10_000, claimed_so_far=9).payout == 10
        with pytest.raises(AmountExceedsBalance):
            acct.settle(1, available_balance=10_000, claimed_so_far=10)

    def test_non_positive_count_rejected(self) -> None:
        with pytest.raises(ValueError):
            _accountant().settle(0, available_balance=100, claimed_so_far=0)


class TestConstruction:
    @pytest.mark.parametrize("kwargs", [
        {"reward": 0},
        {"fee_bps": 10_001},
        {"budget": -1},
    ])
    def test_invalid(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            _accountant(**kwargs)

    def test_fee_for(self) -> None:
        assert _accountant(fee_bps=2500).fee_for(101) == 25
