"""In-process collaborators — a fungible reward token and a receipt registry.

These back the CLI and the test suite. Both can persist to a JSON file so
that balances and receipt ownership survive across CLI invocations; the
file is rewritten atomically after every mutation.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from questledger.receipts.renderer import generate_token_uri

logger = logging.getLogger(__name__)


def _write_json_atomic(path: Path, data: dict) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        json.dump(data, f, sort_keys=True, indent=2)
    os.replace(tmp, path)


class LocalRewardToken:
    """Integer-balance fungible token.

    Usage:
        token = LocalRewardToken("RTC")
        token.mint("sponsor", 1200)
        token.transfer("sponsor", quest_address, 1200)
    """

    def __init__(
        self,
        symbol: str,
        decimals: int = 18,
        storage_path: Optional[Path] = None,
    ) -> None:
        self._symbol = symbol
        self._decimals = decimals
        self._balances: Dict[str, int] = {}
        self._storage_path = storage_path
        # Shared by every quest paying in this asset
        self._lock = threading.Lock()

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)

    @property
    def asset_ref(self) -> str:
        return self._symbol

    @property
    def decimals(self) -> int:
        return self._decimals

    @property
    def total_supply(self) -> int:
        return sum(self._balances.values())

    def balance_of(self, holder: str) -> int:
        return self._balances.get(holder, 0)

    def mint(self, to: str, amount: int) -> None:
        if amount <= 0:
            raise ValueError("Mint amount must be positive")
        with self._lock:
            self._balances[to] = self.balance_of(to) + amount
            self._save()

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        if amount < 0:
            raise ValueError("Transfer amount must be >= 0")
        with self._lock:
            if self.balance_of(sender) < amount:
                logger.debug(
                    "transfer of %d %s from %s refused: balance %d",
                    amount, self._symbol, sender, self.balance_of(sender),
                )
                return False
            self._balances[sender] = self.balance_of(sender) - amount
            self._balances[to] = self.balance_of(to) + amount
            self._save()
        return True

    def _save(self) -> None:
        if self._storage_path is None:
            return
        _write_json_atomic(self._storage_path, {
            "symbol": self._symbol,
            "decimals": self._decimals,
            "balances": self._balances,
        })

    def _load_from_file(self, path: Path) -> None:
        data = json.loads(path.read_text(encoding="utf-8"))
        if data["symbol"] != self._symbol:
            raise ValueError(
                f"Token file {path} holds {data['symbol']}, expected {self._symbol}"
            )
        self._decimals = int(data["decimals"])
        self._balances = {k: int(v) for k, v in data["balances"].items()}


class LocalReceiptRegistry:
    """Receipt registry with sequential ids, each receipt scoped to one quest.

    Usage:
        registry = LocalReceiptRegistry()
        ids = registry.mint("alice", 2, "quest-1")
        registry.transfer_from("alice", "bob", ids[1])
        registry.owned_credentials("bob", "quest-1")   # [ids[1]]
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._next_id = 1
        self._owners: Dict[int, str] = {}
        self._quests: Dict[int, str] = {}
        self._minted_at: Dict[int, int] = {}
        self._storage_path = storage_path
        # Claims read holdings while other callers mint or transfer
        self._lock = threading.Lock()

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)

    def mint(
        self,
        to: str,
        quantity: int,
        quest_id: str,
        now: Optional[int] = None,
    ) -> List[int]:
        """Mint ``quantity`` receipts for ``quest_id`` to ``to``."""
        if quantity <= 0:
            raise ValueError("Mint quantity must be positive")
        if not quest_id:
            raise ValueError("quest_id must be non-empty")
        if now is None:
            now = int(datetime.now(timezone.utc).timestamp())

        minted: List[int] = []
        with self._lock:
            for _ in range(quantity):
                token_id = self._next_id
                self._next_id += 1
                self._owners[token_id] = to
                self._quests[token_id] = quest_id
                self._minted_at[token_id] = now
                minted.append(token_id)
            self._save()
        logger.info("minted receipts %s for quest %s to %s", minted, quest_id, to)
        return minted

    def transfer_from(self, sender: str, to: str, token_id: int) -> None:
        with self._lock:
            owner = self._owner_locked(token_id)
            if owner != sender:
                raise ValueError(f"Receipt {token_id} is not owned by {sender}")
            self._owners[token_id] = to
            self._save()

    def owner_of(self, token_id: int) -> str:
        with self._lock:
            return self._owner_locked(token_id)

    def _owner_locked(self, token_id: int) -> str:
        owner = self._owners.get(token_id)
        if owner is None:
            raise ValueError(f"Unknown receipt: {token_id}")
        return owner

    def quest_of(self, token_id: int) -> str:
        with self._lock:
            self._owner_locked(token_id)
            return self._quests[token_id]

    def minted_at(self, token_id: int) -> int:
        with self._lock:
            self._owner_locked(token_id)
            return self._minted_at[token_id]

    def owned_credentials(self, owner: str, quest_id: str) -> List[int]:
        with self._lock:
            return sorted(
                token_id for token_id, holder in self._owners.items()
                if holder == owner and self._quests[token_id] == quest_id
            )

    def quest_receipt_count(self, quest_id: str) -> int:
        with self._lock:
            return sum(1 for q in self._quests.values() if q == quest_id)

    def token_uri(
        self,
        token_id: int,
        claimed: bool,
        reward_amount: int,
        reward_address: str,
        symbol: str = "",
        decimals: int = 18,
    ) -> str:
        """Render receipt metadata as a base64 JSON data URI."""
        quest_id = self.quest_of(token_id)
        return generate_token_uri(
            token_id=token_id,
            quest_id=quest_id,
            total_participants=self.quest_receipt_count(quest_id),
            claimed=claimed,
            reward_amount=reward_amount,
            reward_address=reward_address,
            symbol=symbol,
            decimals=decimals,
        )

    def _save(self) -> None:
        if self._storage_path is None:
            return
        _write_json_atomic(self._storage_path, {
            "next_id": self._next_id,
            "receipts": [
                {
                    "token_id": token_id,
                    "owner": self._owners[token_id],
                    "quest_id": self._quests[token_id],
                    "minted_at": self._minted_at[token_id],
                }
                for token_id in sorted(self._owners)
            ],
        })

    def _load_from_file(self, path: Path) -> None:
        data = json.loads(path.read_text(encoding="utf-8"))
        self._next_id = int(data["next_id"])
        for entry in data["receipts"]:
            token_id = int(entry["token_id"])
            self._owners[token_id] = entry["owner"]
            self._quests[token_id] = entry["quest_id"]
            self._minted_at[token_id] = int(entry["minted_at"])
