"""Tests for the ERC-20 reward asset adapter against a fake web3 client."""

from types import SimpleNamespace

import pytest

from questledger.collaborators.chain import Erc20RewardAsset
from questledger.collaborators.interfaces import RewardAsset
from questledger.config import ChainSettings


SIGNER = "0x1111111111111111111111111111111111111111"
TOKEN = "0x2222222222222222222222222222222222222222"
CLAIMANT = "0x3333333333333333333333333333333333333333"


class _Call:
    def __init__(self, value) -> None:
        self._value = value

    def call(self):
        return self._value


class _FakeFunctions:
    def __init__(self, chain: "_FakeEth") -> None:
        self._chain = chain

    def balanceOf(self, holder: str) -> _Call:
        return _Call(self._chain.balances.get(holder, 0))

    def symbol(self) -> _Call:
        return _Call("RTC")

    def transfer(self, to: str, amount: int):
        class _Tx:
            def build_transaction(self, params: dict) -> dict:
                return {"to": to, "amount": amount, **params}

        return _Tx()


class _FakeEth:
    def __init__(self, status: int = 1) -> None:
        self.balances = {SIGNER: 500}
        self.sent: list = []
        self.status = status

    def contract(self, address: str, abi: list):
        return SimpleNamespace(functions=_FakeFunctions(self))

    def get_transaction_count(self, address: str) -> int:
        return len(self.sent)

    def send_raw_transaction(self, raw) -> bytes:
        self.sent.append(raw)
        return b"\x01" * 32

    def wait_for_transaction_receipt(self, tx_hash: bytes, timeout: int):
        return SimpleNamespace(status=self.status)


class _FakeWeb3:
    def __init__(self, status: int = 1) -> None:
        self.eth = _FakeEth(status)

    def to_wei(self, value: str, unit: str) -> int:
        return int(value) * 10**9


class _FakeAccount:
    address = SIGNER

    def sign_transaction(self, tx: dict):
        return SimpleNamespace(raw_transaction=tx)


def _settings() -> ChainSettings:
    return ChainSettings(
        rpc_url="http://localhost:8545", private_key="0x00",
        chain_id=11155111, token_address=TOKEN,
    )


def _asset(status: int = 1) -> Erc20RewardAsset:
    return Erc20RewardAsset(_settings(), w3=_FakeWeb3(status), account=_FakeAccount())


class TestErc20RewardAsset:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(_asset(), RewardAsset)

    def test_reads(self) -> None:
        asset = _asset()
        assert asset.asset_ref == TOKEN
        assert asset.address == SIGNER
        assert asset.symbol() == "RTC"
        assert asset.balance_of(SIGNER) == 500

    def test_transfer_builds_signed_transaction(self) -> None:
        asset = _asset()
        assert asset.transfer(SIGNER, CLAIMANT, 10)
        sent = asset._w3.eth.sent
        assert len(sent) == 1
        assert sent[0]["to"] == CLAIMANT
        assert sent[0]["amount"] == 10
        assert sent[0]["chainId"] == 11155111
        assert sent[0]["gasPrice"] == 2 * 10**9

    def test_reverted_transfer_reports_failure(self) -> None:
        assert not _asset(status=0).transfer(SIGNER, CLAIMANT, 10)

    def test_zero_amount_not_sent(self) -> None:
        asset = _asset()
        assert asset.transfer(SIGNER, CLAIMANT, 0)
        assert asset._w3.eth.sent == []

    def test_foreign_sender_rejected(self) -> None:
        with pytest.raises(ValueError):
            _asset().transfer(CLAIMANT, SIGNER, 10)
