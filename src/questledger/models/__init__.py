"""Core data models for questledger."""

from questledger.models.quest import (
    BPS_DENOMINATOR,
    ClaimReceipt,
    LifecycleState,
    QuestParams,
    QuestState,
    Settlement,
    Withdrawal,
)

__all__ = [
    "BPS_DENOMINATOR",
    "ClaimReceipt",
    "LifecycleState",
    "QuestParams",
    "QuestState",
    "Settlement",
    "Withdrawal",
]
