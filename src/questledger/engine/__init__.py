"""Quest accounting engine — lifecycle gating, claim ledger, reward accounting."""

from questledger.engine.accountant import RewardAccountant
from questledger.engine.claim_ledger import ClaimLedger
from questledger.engine.lifecycle import LifecycleStateMachine

__all__ = ["ClaimLedger", "LifecycleStateMachine", "RewardAccountant"]
