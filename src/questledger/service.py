"""Quest service — unified facade over every quest the process manages.

This is the primary interface for programmatic access. It orchestrates:
- Quest creation (validated schedule and parameters)
- Lifecycle operations (start, pause, unpause, allow-list)
- Claims and the two owner withdrawals
- Persistence (event log, quest state store)

All operations return a typed ServiceResult. Domain failures are carried
in ``errors`` with their stable code in ``data["code"]``; nothing is
raised to the caller for an expected failure.

Each committed operation appends an audit event and persists the quest,
both while the quest's lock is still held, so the log order matches the
commit order. The on-chain or in-process transfer has already happened
at that point and cannot be undone: a persistence failure therefore
never rolls back in-memory state. It returns a warning and marks the
service as degraded instead.

Lock order is always quest lock -> I/O lock; the I/O lock never takes a
quest lock.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from questledger.audit import check_quest
from questledger.collaborators.interfaces import CredentialRegistry, RewardAsset
from questledger.config import LedgerParams
from questledger.errors import DuplicateQuest, QuestError, UnknownQuest
from questledger.ledger import QuestLedger, utc_timestamp
from questledger.persistence.event_log import EventKind, EventLog, EventRecord
from questledger.persistence.state_store import QuestStateStore, StoredQuest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


class QuestService:
    """Facade over many independently addressable quests.

    Usage:
        service = QuestService(receipts, {"RTC": token})
        service.create_quest("q1", owner="sponsor", address="quest:q1",
                             reward_asset_ref="RTC", total_budget=1000,
                             reward_per_credential=10, start_time=...,
                             end_time=..., fee_rate_bps=2000)
        service.start_quest("q1", "sponsor")
        result = service.claim("q1", "alice")

    Persistence (optional):
        service = QuestService(receipts, assets,
                               event_log=EventLog(path),
                               state_store=QuestStateStore(path))
        # Quests are persisted on every mutation and restored on construction.
    """

    def __init__(
        self,
        credentials: CredentialRegistry,
        reward_assets: Mapping[str, RewardAsset],
        ledger_params: Optional[LedgerParams] = None,
        event_log: Optional[EventLog] = None,
        state_store: Optional[QuestStateStore] = None,
    ) -> None:
        self._credentials = credentials
        self._assets = dict(reward_assets)
        self._ledger_params = ledger_params or LedgerParams()
        self._event_log = event_log
        self._state_store = state_store

        self._quests: Dict[str, QuestLedger] = {}
        self._snapshots: Dict[str, StoredQuest] = {}
        self._registry_lock = threading.Lock()
        self._io_lock = threading.Lock()

        if state_store is not None:
            for quest_id, (params, state, claimed_ids) in state_store.load_quests().items():
                asset = self._assets.get(params.reward_asset_ref)
                if asset is None:
                    raise ValueError(
                        f"Quest {quest_id} uses reward asset "
                        f"{params.reward_asset_ref}, which is not configured"
                    )
                self._quests[quest_id] = QuestLedger(
                    params, credentials, asset,
                    state=state,
                    claimed_ids=claimed_ids,
                    ledger_params=self._ledger_params,
                )
                self._snapshots[quest_id] = (params, state, list(claimed_ids))
            logger.info("restored %d quest(s) from %s",
                        len(self._quests), state_store.storage_path)

        # Initialize counter from persisted log to avoid ID collision on restart
        self._event_counter = event_log.count if event_log is not None else 0
        self._persistence_degraded = False

    # ------------------------------------------------------------------
    # Quest creation and lookup
    # ------------------------------------------------------------------

    def create_quest(
        self,
        quest_id: str,
        owner: str,
        address: str,
        reward_asset_ref: str,
        total_budget: int,
        reward_per_credential: int,
        start_time: int,
        end_time: int,
        fee_rate_bps: Optional[int] = None,
        allow_list_ref: str = "",
        now: Optional[int] = None,
    ) -> ServiceResult:
        """Create a quest. Funding happens separately, by transfer to ``address``."""
        asset = self._assets.get(reward_asset_ref)
        if asset is None:
            return ServiceResult(
                success=False,
                errors=[f"Unknown reward asset: {reward_asset_ref}"],
            )
        if fee_rate_bps is None:
            fee_rate_bps = self._ledger_params.default_fee_bps

        with self._registry_lock:
            try:
                if quest_id in self._quests:
                    raise DuplicateQuest(f"Quest already exists: {quest_id}")
                quest = QuestLedger.create(
                    quest_id=quest_id,
                    owner=owner,
                    address=address,
                    reward_asset=asset,
                    credentials=self._credentials,
                    total_budget=total_budget,
                    reward_per_credential=reward_per_credential,
                    fee_rate_bps=fee_rate_bps,
                    start_time=start_time,
                    end_time=end_time,
                    allow_list_ref=allow_list_ref,
                    now=now,
                    ledger_params=self._ledger_params,
                )
            except (QuestError, ValueError) as e:
                return self._failure(quest_id, "create", e)
            self._quests[quest_id] = quest

        return self._execute(
            quest_id, owner, EventKind.QUEST_CREATED,
            lambda q: {
                "total_budget": q.params.total_budget,
                "reward_per_credential": q.params.reward_per_credential,
                "fee_rate_bps": q.params.fee_rate_bps,
                "start_time": q.params.start_time,
                "end_time": q.params.end_time,
                "address": q.params.address,
                "reward_asset": q.params.reward_asset_ref,
            },
        )

    def get_quest(self, quest_id: str) -> Optional[QuestLedger]:
        with self._registry_lock:
            return self._quests.get(quest_id)

    def list_quests(self) -> List[str]:
        with self._registry_lock:
            return sorted(self._quests)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_quest(
        self, quest_id: str, caller: str, now: Optional[int] = None,
    ) -> ServiceResult:
        def _start(q: QuestLedger) -> dict[str, Any]:
            q.start(caller, now=now)
            return {"has_started": True}

        return self._execute(quest_id, caller, EventKind.QUEST_STARTED, _start)

    def pause_quest(self, quest_id: str, caller: str) -> ServiceResult:
        def _pause(q: QuestLedger) -> dict[str, Any]:
            q.pause(caller)
            return {"is_paused": True}

        return self._execute(quest_id, caller, EventKind.QUEST_PAUSED, _pause)

    def unpause_quest(self, quest_id: str, caller: str) -> ServiceResult:
        def _unpause(q: QuestLedger) -> dict[str, Any]:
            q.unpause(caller)
            return {"is_paused": False}

        return self._execute(quest_id, caller, EventKind.QUEST_UNPAUSED, _unpause)

    def set_allow_list(
        self, quest_id: str, caller: str, allow_list_ref: str,
    ) -> ServiceResult:
        def _set(q: QuestLedger) -> dict[str, Any]:
            q.set_allow_list(caller, allow_list_ref)
            return {"allow_list": allow_list_ref}

        return self._execute(quest_id, caller, EventKind.ALLOW_LIST_SET, _set)

    # ------------------------------------------------------------------
    # Claims and withdrawals
    # ------------------------------------------------------------------

    def claim(
        self, quest_id: str, caller: str, now: Optional[int] = None,
    ) -> ServiceResult:
        def _claim(q: QuestLedger) -> dict[str, Any]:
            receipt = q.claim(caller, now=now)
            return {
                "claimant": receipt.claimant,
                "credential_ids": list(receipt.credential_ids),
                "payout": receipt.payout,
                "fee_delta": receipt.fee_delta,
            }

        return self._execute(quest_id, caller, EventKind.REWARD_CLAIMED, _claim)

    def withdraw(
        self, quest_id: str, caller: str, now: Optional[int] = None,
    ) -> ServiceResult:
        def _withdraw(q: QuestLedger) -> dict[str, Any]:
            w = q.withdraw(caller, now=now)
            return {"amount": w.amount, "remaining_balance": w.remaining_balance}

        return self._execute(quest_id, caller, EventKind.PRINCIPAL_WITHDRAWN, _withdraw)

    def withdraw_fee(
        self, quest_id: str, caller: str, now: Optional[int] = None,
    ) -> ServiceResult:
        def _withdraw_fee(q: QuestLedger) -> dict[str, Any]:
            w = q.withdraw_fee(caller, now=now)
            return {"amount": w.amount, "remaining_balance": w.remaining_balance}

        return self._execute(quest_id, caller, EventKind.FEE_WITHDRAWN, _withdraw_fee)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_claimed(self, quest_id: str, credential_id: int) -> ServiceResult:
        quest = self.get_quest(quest_id)
        if quest is None:
            return self._failure(quest_id, "is_claimed", UnknownQuest(f"Quest not found: {quest_id}"))
        return ServiceResult(
            success=True,
            data={"quest_id": quest_id, "credential_id": credential_id,
                  "claimed": quest.is_claimed(credential_id)},
        )

    def quest_status(self, quest_id: str, now: Optional[int] = None) -> ServiceResult:
        quest = self.get_quest(quest_id)
        if quest is None:
            return self._failure(quest_id, "status", UnknownQuest(f"Quest not found: {quest_id}"))
        data = quest.snapshot(now)
        if self._event_log is not None:
            with self._io_lock:
                data["events"] = len(self._event_log.events_for_quest(quest_id))
                data["claim_events"] = len(
                    self._event_log.events_for_quest(quest_id, EventKind.REWARD_CLAIMED)
                )
        return ServiceResult(success=True, data=data)

    def check_invariants(self) -> ServiceResult:
        violations: List[str] = []
        for quest_id in self.list_quests():
            quest = self.get_quest(quest_id)
            with quest.transaction():
                violations.extend(check_quest(quest))
        if violations:
            for v in violations:
                logger.error("invariant violated: %s", v)
            return ServiceResult(success=False, errors=violations)
        return ServiceResult(success=True, data={"quests_checked": len(self._quests)})

    def status(self) -> dict[str, Any]:
        """Return a service-wide summary."""
        now = utc_timestamp()
        by_state: dict[str, int] = {}
        for quest_id in self.list_quests():
            state = self.get_quest(quest_id).lifecycle_state(now).value
            by_state[state] = by_state.get(state, 0) + 1
        events, last_event_id = 0, None
        if self._event_log is not None:
            with self._io_lock:
                events = self._event_log.count
                last = self._event_log.last_event
                last_event_id = last.event_id if last else None
        return {
            "quests": {"total": len(self._quests), "by_state": by_state},
            "reward_assets": sorted(self._assets),
            "events": events,
            "last_event": last_event_id,
            "persistence_degraded": self._persistence_degraded,
        }

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _execute(
        self,
        quest_id: str,
        caller: str,
        kind: EventKind,
        operation: Callable[[QuestLedger], dict[str, Any]],
    ) -> ServiceResult:
        """Run ``operation`` under the quest lock, then audit and persist.

        The audit event and the state snapshot are written before the
        quest lock is released.
        """
        quest = self.get_quest(quest_id)
        if quest is None:
            return self._failure(
                quest_id, kind.value, UnknownQuest(f"Quest not found: {quest_id}"),
            )

        with quest.transaction():
            try:
                data = operation(quest)
            except (QuestError, ValueError) as e:
                return self._failure(quest_id, kind.value, e)

            data = {"quest_id": quest_id, **data}
            warnings = [
                w for w in (
                    self._record_event(kind, caller, data),
                    self._persist_quest(quest),
                ) if w
            ]

        if warnings:
            data["warning"] = "; ".join(warnings)
        return ServiceResult(success=True, data=data)

    def _failure(self, quest_id: str, action: str, error: Exception) -> ServiceResult:
        code = error.code if isinstance(error, QuestError) else "invalid_argument"
        logger.warning("quest %s %s rejected: %s (%s)", quest_id, action, error, code)
        return ServiceResult(
            success=False,
            errors=[str(error)],
            data={"quest_id": quest_id, "code": code},
        )

    def _next_event_id(self) -> str:
        """Generate a monotonically increasing unique event ID."""
        self._event_counter += 1
        return f"EVT-{self._event_counter:08d}"

    def _record_event(
        self, kind: EventKind, actor_id: str, payload: dict[str, Any],
    ) -> Optional[str]:
        """Append an audit event. Returns a warning string or None."""
        if self._event_log is None:
            return None
        with self._io_lock:
            try:
                self._event_log.append(EventRecord.create(
                    event_id=self._next_event_id(),
                    event_kind=kind,
                    actor_id=actor_id,
                    payload=payload,
                ))
            except (ValueError, OSError) as e:
                self._persistence_degraded = True
                logger.error("event log append failed: %s", e)
                return f"Event log failure: {e}"
        return None

    def _persist_quest(self, quest: QuestLedger) -> Optional[str]:
        """Snapshot one quest and rewrite the store. Returns a warning or None.

        MUST NOT roll back in-memory state: the transfer has already been
        made. On failure the store is stale until the next successful write.
        """
        if self._state_store is None:
            return None
        snapshot: StoredQuest = (
            quest.params, quest.state_copy(), sorted(quest.claimed_ids()),
        )
        with self._io_lock:
            self._snapshots[quest.quest_id] = snapshot
            try:
                self._state_store.save_quests(self._snapshots)
            except OSError as e:
                self._persistence_degraded = True
                logger.error("quest store write failed: %s", e)
                return f"Persistence degraded: {e}; quest committed but state store is stale"
        return None
