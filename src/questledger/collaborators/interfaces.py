"""Collaborator contracts — the receipt registry and the reward asset.

The quest ledger never talks to a concrete token or registry. It talks to
these Protocols, injected at construction. Swapping an in-process token for
an on-chain ERC-20 requires zero changes to claim or fee accounting.
"""

from __future__ import annotations

from typing import Iterable, Protocol, runtime_checkable


@runtime_checkable
class CredentialRegistry(Protocol):
    """Read-only view of receipt ownership."""

    def owned_credentials(self, owner: str, quest_id: str) -> Iterable[int]:
        """Every receipt id ``owner`` currently holds for ``quest_id``.

        Claimed and unclaimed alike; the claim ledger does the filtering.
        """
        ...


@runtime_checkable
class RewardAsset(Protocol):
    """Debit/credit interface of a fungible reward asset."""

    @property
    def asset_ref(self) -> str:
        """Identifier of the asset (symbol, contract address, ...)."""
        ...

    def balance_of(self, holder: str) -> int:
        ...

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        """Move ``amount`` base units from ``sender`` to ``to``.

        Returns False, without moving anything, if the transfer cannot
        be made.
        """
        ...
