"""External collaborators — receipt ownership and the reward asset.

The on-chain adapter lives in questledger.collaborators.chain and is not
imported here so that the in-process path never loads web3.
"""

from questledger.collaborators.interfaces import CredentialRegistry, RewardAsset
from questledger.collaborators.local import LocalReceiptRegistry, LocalRewardToken

__all__ = [
    "CredentialRegistry",
    "LocalReceiptRegistry",
    "LocalRewardToken",
    "RewardAsset",
]
