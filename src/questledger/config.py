"""Configuration — ledger tunables from JSON, chain settings from the environment.

Ledger parameters live in config/ledger_params.json. Chain credentials
are never stored there: they come from environment variables, optionally
loaded from a .env file at the project root.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


DEFAULT_CONFIG_DIR = Path(__file__).resolve().parents[2] / "config"
PARAMS_FILENAME = "ledger_params.json"

CLAIM_LOCK_SECONDS = 86_400


@dataclass(frozen=True)
class LedgerParams:
    """Tunables shared by every quest the service manages."""

    claim_lock_seconds: int = CLAIM_LOCK_SECONDS
    max_fee_bps: int = 10_000
    default_fee_bps: int = 2_000
    require_end_after_start: bool = False

    def __post_init__(self) -> None:
        if self.claim_lock_seconds < 0:
            raise ValueError("claim_lock_seconds must be >= 0")
        if not (0 <= self.max_fee_bps <= 10_000):
            raise ValueError("max_fee_bps must be in [0, 10000]")
        if not (0 <= self.default_fee_bps <= self.max_fee_bps):
            raise ValueError("default_fee_bps must be in [0, max_fee_bps]")

    @classmethod
    def from_config_dir(cls, config_dir: Path = DEFAULT_CONFIG_DIR) -> LedgerParams:
        """Load from ``ledger_params.json``; missing keys keep their defaults."""
        path = config_dir / PARAMS_FILENAME
        if not path.exists():
            return cls()
        data = json.loads(path.read_text(encoding="utf-8"))
        unknown = set(data) - set(cls.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown ledger params in {path}: {sorted(unknown)}")
        return cls(**data)


@dataclass(frozen=True)
class ChainSettings:
    """Connection settings for the on-chain reward asset adapter."""

    rpc_url: str
    private_key: str
    chain_id: int
    token_address: str
    gas: int = 100_000
    gas_price_gwei: str = "2"

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> ChainSettings:
        """Read RPC_URL, PRIVATE_KEY, CHAIN_ID and REWARD_TOKEN_ADDRESS.

        Raises ValueError naming every missing variable.
        """
        load_dotenv(env_file or DEFAULT_CONFIG_DIR.parent / ".env")
        required = ("RPC_URL", "PRIVATE_KEY", "REWARD_TOKEN_ADDRESS")
        missing = [name for name in required if not os.getenv(name)]
        if missing:
            raise ValueError(f"Missing chain settings: {', '.join(missing)}")
        return cls(
            rpc_url=os.environ["RPC_URL"],
            private_key=os.environ["PRIVATE_KEY"],
            chain_id=int(os.getenv("CHAIN_ID", "11155111")),
            token_address=os.environ["REWARD_TOKEN_ADDRESS"],
            gas=int(os.getenv("GAS_LIMIT", "100000")),
            gas_price_gwei=os.getenv("GAS_PRICE_GWEI", "2"),
        )
