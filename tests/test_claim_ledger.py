"""Tests for ClaimLedger — proves no credential is ever marked claimed twice."""

import pytest

from questledger.engine.claim_ledger import ClaimLedger
from questledger.errors import AlreadyClaimed


class TestClaimLedger:
    def test_unknown_id_defaults_unclaimed(self) -> None:
        ledger = ClaimLedger()
        assert not ledger.is_claimed(10**30)
        assert ledger.count == 0

    def test_mark_claimed(self) -> None:
        ledger = ClaimLedger()
        fresh = ledger.mark_claimed({1, 2})
        assert fresh == frozenset({1, 2})
        assert ledger.is_claimed(1) and ledger.is_claimed(2)
        assert ledger.count == 2

    def test_unclaimed_subset_is_pure(self) -> None:
        ledger = ClaimLedger([1])
        assert ledger.unclaimed_subset_of([1, 2, 3]) == frozenset({2, 3})
        assert not ledger.is_claimed(2)

    def test_fully_claimed_set_rejected(self) -> None:
        ledger = ClaimLedger([1, 2])
        with pytest.raises(AlreadyClaimed):
            ledger.mark_claimed({1, 2})

    def test_partially_claimed_batch_rejected_whole(self) -> None:
        ledger = ClaimLedger([1])
        with pytest.raises(AlreadyClaimed):
            ledger.mark_claimed({1, 2})
        assert not ledger.is_claimed(2)

    def test_restore_from_ids(self) -> None:
        ledger = ClaimLedger([5, 7])
        assert ledger.claimed_ids() == frozenset({5, 7})
