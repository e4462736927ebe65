"""Quest invariant checks against live ledgers.

Each check returns a list of violation descriptions. Empty means the
quest is consistent. These are the numeric guarantees the ledger must
hold at every observable state; the service runs them on demand and the
invariant tool runs them over a persisted data directory.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List

from questledger.collaborators.local import LocalReceiptRegistry, LocalRewardToken
from questledger.config import CLAIM_LOCK_SECONDS, LedgerParams
from questledger.ledger import QuestLedger
from questledger.models.quest import BPS_DENOMINATOR
from questledger.persistence.event_log import EventLog
from questledger.persistence.state_store import QuestStateStore

EVENTS_FILENAME = "events.jsonl"
QUESTS_FILENAME = "quests.json"
RECEIPTS_FILENAME = "receipts.json"


def token_path(data_dir: Path, symbol: str) -> Path:
    return data_dir / f"token_{symbol}.json"


def check_quest(quest: QuestLedger) -> List[str]:
    params = quest.params
    state = quest.state_copy()
    claimed_ids = quest.claimed_ids()
    errors: List[str] = []
    qid = params.quest_id

    owed_to_claimants = state.claimed_count * params.reward_per_credential
    if owed_to_claimants > params.total_budget:
        errors.append(
            f"{qid}: claimed_count * reward ({owed_to_claimants}) exceeds "
            f"total_budget ({params.total_budget})"
        )

    if state.total_paid != owed_to_claimants:
        errors.append(
            f"{qid}: total_paid ({state.total_paid}) != claimed_count * reward "
            f"({owed_to_claimants})"
        )

    if len(claimed_ids) != state.claimed_count:
        errors.append(
            f"{qid}: {len(claimed_ids)} receipts marked claimed but "
            f"claimed_count is {state.claimed_count}"
        )

    # Per-claim flooring can only lose units against the aggregate rate.
    fee_ceiling = owed_to_claimants * params.fee_rate_bps // BPS_DENOMINATOR
    if state.outstanding_fee > fee_ceiling:
        errors.append(
            f"{qid}: outstanding_fee ({state.outstanding_fee}) exceeds "
            f"floor(paid * rate) ({fee_ceiling})"
        )
    if state.fee_withdrawn > state.outstanding_fee:
        errors.append(
            f"{qid}: fee_withdrawn ({state.fee_withdrawn}) exceeds "
            f"outstanding_fee ({state.outstanding_fee})"
        )

    if not state.has_started and state.claimed_count:
        errors.append(f"{qid}: claims recorded before the quest started")

    return errors


def check_ledger_params(params: LedgerParams) -> List[str]:
    errors: List[str] = []
    if params.claim_lock_seconds < CLAIM_LOCK_SECONDS:
        errors.append(
            f"claim_lock_seconds ({params.claim_lock_seconds}) is shorter than "
            f"one day; mint-then-claim within the lock becomes possible"
        )
    if params.max_fee_bps > BPS_DENOMINATOR:
        errors.append(f"max_fee_bps ({params.max_fee_bps}) above {BPS_DENOMINATOR}")
    if params.default_fee_bps > params.max_fee_bps:
        errors.append(
            f"default_fee_bps ({params.default_fee_bps}) above max_fee_bps "
            f"({params.max_fee_bps})"
        )
    return errors


def check_data_dir(config_dir: Path, data_dir: Path) -> List[str]:
    """Validate the config file and every quest persisted under ``data_dir``.

    Reward balances come from the local token files the CLI writes
    (``token_<SYMBOL>.json``); a quest whose asset has no token file is
    reported rather than skipped.
    """
    try:
        ledger_params = LedgerParams.from_config_dir(config_dir)
    except (ValueError, TypeError) as e:
        return [f"config: {e}"]
    errors = check_ledger_params(ledger_params)

    try:
        EventLog(data_dir / EVENTS_FILENAME)
    except ValueError as e:
        errors.append(f"event log: {e}")

    try:
        stored = QuestStateStore(data_dir / QUESTS_FILENAME).load_quests()
    except ValueError as e:
        errors.append(f"quest store: {e}")
        return errors

    receipts = LocalReceiptRegistry(data_dir / RECEIPTS_FILENAME)
    tokens: Dict[str, LocalRewardToken] = {}
    for quest_id, (params, state, claimed_ids) in sorted(stored.items()):
        ref = params.reward_asset_ref
        if ref not in tokens:
            path = token_path(data_dir, ref)
            if not path.exists():
                errors.append(f"{quest_id}: no token file for reward asset {ref}")
                continue
            tokens[ref] = LocalRewardToken(ref, storage_path=path)
        quest = QuestLedger(
            params, receipts, tokens[ref],
            state=state, claimed_ids=claimed_ids, ledger_params=ledger_params,
        )
        errors.extend(check_quest(quest))
    return errors
