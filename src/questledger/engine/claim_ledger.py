"""Claim ledger — the single source of truth against double payment.

One bit per credential id, scoped to a single quest. Ids are stored
sparsely: an id that was never claimed is simply absent, so nothing is
pre-allocated over the id space. A claimed id is never removed.
"""

from __future__ import annotations

from typing import AbstractSet, FrozenSet, Iterable, Set

from questledger.errors import AlreadyClaimed


class ClaimLedger:
    """Sparse credential-id -> claimed map.

    Usage:
        ledger = ClaimLedger()
        fresh = ledger.unclaimed_subset_of(owned_ids)
        ledger.mark_claimed(fresh)
    """

    def __init__(self, claimed: Iterable[int] = ()) -> None:
        self._claimed: Set[int] = set(claimed)

    def is_claimed(self, credential_id: int) -> bool:
        return credential_id in self._claimed

    def unclaimed_subset_of(self, credential_ids: Iterable[int]) -> FrozenSet[int]:
        """Filter out ids that have already claimed. Pure read."""
        return frozenset(i for i in credential_ids if i not in self._claimed)

    def mark_claimed(self, credential_ids: AbstractSet[int]) -> FrozenSet[int]:
        """Mark every id in the set claimed, all or nothing.

        Raises AlreadyClaimed if nothing in the set is left to claim.
        Ids that were already claimed are rejected as a whole batch rather
        than silently skipped, so the caller always filters first.
        """
        fresh = self.unclaimed_subset_of(credential_ids)
        if not fresh:
            raise AlreadyClaimed("All credentials in this set have already claimed")
        if len(fresh) != len(credential_ids):
            raise AlreadyClaimed(
                f"{len(credential_ids) - len(fresh)} credential(s) in the batch "
                f"have already claimed"
            )
        self._claimed.update(fresh)
        return fresh

    def claimed_ids(self) -> FrozenSet[int]:
        return frozenset(self._claimed)

    @property
    def count(self) -> int:
        return len(self._claimed)
