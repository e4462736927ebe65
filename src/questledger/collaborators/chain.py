"""On-chain reward asset — an ERC-20 token driven through web3.

The quest's holder address is the signing account: transfers are sent as
signed raw transactions from that account and succeed only if the
transaction receipt reports status 1.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from questledger.config import ChainSettings

logger = logging.getLogger(__name__)


ERC20_ABI = [
    {
        "constant": True,
        "inputs": [{"name": "owner", "type": "address"}],
        "name": "balanceOf",
        "outputs": [{"name": "", "type": "uint256"}],
        "type": "function",
    },
    {
        "constant": False,
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "name": "transfer",
        "outputs": [{"name": "", "type": "bool"}],
        "type": "function",
    },
    {
        "constant": True,
        "inputs": [],
        "name": "symbol",
        "outputs": [{"name": "", "type": "string"}],
        "type": "function",
    },
]


class Erc20RewardAsset:
    """RewardAsset backed by an ERC-20 contract.

    Usage:
        asset = Erc20RewardAsset(ChainSettings.from_env())
        asset.balance_of(asset.address)
        asset.transfer(asset.address, claimant, 10)
    """

    def __init__(
        self,
        settings: ChainSettings,
        w3: Optional[Any] = None,
        account: Optional[Any] = None,
        receipt_timeout: int = 300,
    ) -> None:
        from web3 import Web3, HTTPProvider
        from eth_account import Account

        self._settings = settings
        self._w3 = w3 if w3 is not None else Web3(HTTPProvider(settings.rpc_url))
        self._account = account if account is not None else Account.from_key(
            settings.private_key
        )
        self._to_checksum = Web3.to_checksum_address
        self._contract = self._w3.eth.contract(
            address=self._to_checksum(settings.token_address),
            abi=ERC20_ABI,
        )
        self._receipt_timeout = receipt_timeout

    @property
    def asset_ref(self) -> str:
        return self._to_checksum(self._settings.token_address)

    @property
    def address(self) -> str:
        """The signing account, i.e. the quest's holder address."""
        return self._account.address

    def symbol(self) -> str:
        return self._contract.functions.symbol().call()

    def balance_of(self, holder: str) -> int:
        return int(self._contract.functions.balanceOf(self._to_checksum(holder)).call())

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        if self._to_checksum(sender) != self._account.address:
            raise ValueError(
                f"Can only transfer from the signing account {self._account.address}"
            )
        if amount == 0:
            return True

        nonce = self._w3.eth.get_transaction_count(self._account.address)
        tx = self._contract.functions.transfer(
            self._to_checksum(to), amount,
        ).build_transaction({
            "from": self._account.address,
            "chainId": self._settings.chain_id,
            "gas": self._settings.gas,
            "gasPrice": self._w3.to_wei(self._settings.gas_price_gwei, "gwei"),
            "nonce": nonce,
        })
        signed = self._account.sign_transaction(tx)
        tx_hash = self._w3.eth.send_raw_transaction(signed.raw_transaction)
        receipt = self._w3.eth.wait_for_transaction_receipt(
            tx_hash, timeout=self._receipt_timeout,
        )
        ok = receipt.status == 1
        if ok:
            logger.info("ERC-20 transfer %s -> %s amount=%d tx=%s",
                        sender, to, amount, tx_hash.hex())
        else:
            logger.warning("ERC-20 transfer reverted: tx=%s", tx_hash.hex())
        return ok
