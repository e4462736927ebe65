"""Tests for ledger configuration and chain settings loading."""

import json
from pathlib import Path

import pytest

from questledger.config import CLAIM_LOCK_SECONDS, ChainSettings, LedgerParams


CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


class TestLedgerParams:
    def test_shipped_config(self) -> None:
        params = LedgerParams.from_config_dir(CONFIG_DIR)
        assert params.claim_lock_seconds == CLAIM_LOCK_SECONDS
        assert params.default_fee_bps == 2000
        assert params.max_fee_bps == 10_000
        assert params.require_end_after_start is False

    def test_missing_file_defaults(self, tmp_path: Path) -> None:
        assert LedgerParams.from_config_dir(tmp_path) == LedgerParams()

    def test_partial_file(self, tmp_path: Path) -> None:
        (tmp_path / "ledger_params.json").write_text(
            json.dumps({"require_end_after_start": True}), encoding="utf-8",
        )
        params = LedgerParams.from_config_dir(tmp_path)
        assert params.require_end_after_start is True
        assert params.claim_lock_seconds == CLAIM_LOCK_SECONDS

    def test_unknown_key_rejected(self, tmp_path: Path) -> None:
        (tmp_path / "ledger_params.json").write_text(
            json.dumps({"claim_lock": 1}), encoding="utf-8",
        )
        with pytest.raises(ValueError, match="Unknown"):
            LedgerParams.from_config_dir(tmp_path)

    @pytest.mark.parametrize("kwargs", [
        {"claim_lock_seconds": -1},
        {"max_fee_bps": 10_001},
        {"default_fee_bps": 600, "max_fee_bps": 500},
    ])
    def test_invalid(self, kwargs: dict) -> None:
        with pytest.raises(ValueError):
            LedgerParams(**kwargs)


CHAIN_VARS = (
    "RPC_URL", "PRIVATE_KEY", "CHAIN_ID", "REWARD_TOKEN_ADDRESS",
    "GAS_LIMIT", "GAS_PRICE_GWEI",
)


def _clear_chain_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # setenv first so teardown also removes whatever load_dotenv adds
    for name in CHAIN_VARS:
        monkeypatch.setenv(name, "unset")
        monkeypatch.delenv(name)


class TestChainSettings:
    def test_from_env_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _clear_chain_env(monkeypatch)
        env = tmp_path / ".env"
        env.write_text(
            "RPC_URL=http://localhost:8545\n"
            "PRIVATE_KEY=0xabc\n"
            "REWARD_TOKEN_ADDRESS=0x0000000000000000000000000000000000000001\n"
            "CHAIN_ID=1\n",
            encoding="utf-8",
        )
        settings = ChainSettings.from_env(env)
        assert settings.rpc_url == "http://localhost:8545"
        assert settings.chain_id == 1
        assert settings.gas == 100_000

    def test_missing_variables(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        _clear_chain_env(monkeypatch)
        with pytest.raises(ValueError, match="PRIVATE_KEY"):
            ChainSettings.from_env(tmp_path / "missing.env")
