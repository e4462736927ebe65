"""Receipt presentation helpers."""

from questledger.receipts.renderer import (
    generate_token_uri,
    human_reward_amount,
    symbol_for,
)

__all__ = ["generate_token_uri", "human_reward_amount", "symbol_for"]
