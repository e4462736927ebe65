"""Receipt metadata rendering — token URI, SVG image, human-readable amounts.

Stateless presentation only: nothing here reads or writes accounting
state. The token URI is a data URI holding base64 JSON, whose image is
itself a base64 SVG data URI.
"""

from __future__ import annotations

import base64
import json
from html import escape
from typing import Dict, Optional


NAME_PREFIX = "Quest Receipt"
DESCRIPTION = "Quest receipts are used to claim rewards from completed quests."

# Well-known reward tokens; anything else falls back to the caller's symbol.
KNOWN_SYMBOLS: Dict[str, str] = {
    "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2": "WETH",
    "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48": "USDC",
    "0xdac17f958d2ee523a2206206994597c13d831ec7": "USDT",
    "0x6b175474e89094c44da98b954eedeac495271d0f": "DAI",
}


def human_reward_amount(amount: int, decimals: int = 18) -> str:
    """Format base units as a decimal string without trailing zeros.

    human_reward_amount(10**17) == "0.1"
    human_reward_amount(1000) == "0.000000000000001"
    """
    if amount < 0:
        raise ValueError("amount must be >= 0")
    if decimals == 0:
        return str(amount)
    whole, frac = divmod(amount, 10 ** decimals)
    if frac == 0:
        return str(whole)
    frac_str = str(frac).rjust(decimals, "0").rstrip("0")
    return f"{whole}.{frac_str}"


def symbol_for(reward_address: str, fallback: str = "") -> str:
    return KNOWN_SYMBOLS.get(reward_address.lower(), fallback)


def generate_text_fields(
    claimed: bool,
    reward_amount: int,
    reward_address: str,
    symbol: str = "",
    decimals: int = 18,
) -> str:
    status = "CLAIMED" if claimed else "REDEEMABLE"
    amount_text = human_reward_amount(reward_amount, decimals)
    symbol_text = symbol_for(reward_address, symbol)
    return (
        f'<text x="50%" y="750" class="status">{status}</text>'
        f'<text x="50%" y="615" class="brand">{escape(NAME_PREFIX)}</text>'
        f'<text x="50%" y="365" class="amount">'
        f'{escape(amount_text)} {escape(symbol_text)}</text>'
    )


def generate_svg(
    claimed: bool,
    reward_amount: int,
    reward_address: str,
    symbol: str = "",
    decimals: int = 18,
) -> str:
    return (
        '<svg xmlns="http://www.w3.org/2000/svg" width="648" height="889" fill="none">'
        '<style>text{font-family:Arial;text-anchor:middle;fill:#dae0ff}'
        '.status{font-size:26px;font-weight:bold;fill:#0f0f16}'
        '.brand{font-size:26px}.amount{font-size:39.758px}</style>'
        '<rect x="45" y="44" width="558" height="800" rx="47" fill="#0f0f16" stroke="#232854"/>'
        '<rect x="81" y="695" width="488" height="96" fill="#ad86ff"/>'
        + generate_text_fields(claimed, reward_amount, reward_address, symbol, decimals)
        + "</svg>"
    )


def generate_token_uri(
    token_id: int,
    quest_id: str,
    total_participants: int,
    claimed: bool,
    reward_amount: int,
    reward_address: str,
    symbol: str = "",
    decimals: int = 18,
    image: Optional[str] = None,
) -> str:
    """Build the ``data:application/json;base64,...`` metadata for a receipt."""
    if image is None:
        svg = generate_svg(claimed, reward_amount, reward_address, symbol, decimals)
        image = "data:image/svg+xml;base64," + base64.b64encode(
            svg.encode("utf-8")
        ).decode("ascii")

    metadata = {
        "name": f"{NAME_PREFIX} #{token_id}",
        "description": DESCRIPTION,
        "image": image,
        "attributes": [
            {"trait_type": "Quest ID", "value": quest_id},
            {"trait_type": "Token ID", "value": str(token_id)},
            {"trait_type": "Total Participants", "value": str(total_participants)},
            {"trait_type": "Claimed", "value": "true" if claimed else "false"},
            {"trait_type": "Reward Amount",
             "value": human_reward_amount(reward_amount, decimals)},
            {"trait_type": "Reward Address", "value": reward_address.lower()},
        ],
    }
    encoded = base64.b64encode(
        json.dumps(metadata, ensure_ascii=False).encode("utf-8")
    ).decode("ascii")
    return "data:application/json;base64," + encoded
