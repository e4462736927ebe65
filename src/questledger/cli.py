"""questledger CLI — command-line interface for quest reward accounting.

Balances and receipts live in local JSON files under the data directory,
so a whole quest can be driven from the shell:

Usage:
    python -m questledger.cli --now 1700000000 create-quest --id q1 --owner sponsor \\
        --budget 1000 --reward 10 --start 1700001000 --end 1700010000
    python -m questledger.cli fund --quest q1 --amount 1200
    python -m questledger.cli mint-receipts --quest q1 --to alice --quantity 1
    python -m questledger.cli start --quest q1 --caller sponsor
    python -m questledger.cli --now 1700087400 claim --quest q1 --caller alice
    python -m questledger.cli withdraw-fee --quest q1 --caller sponsor
    python -m questledger.cli check-invariants
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from questledger.audit import (
    EVENTS_FILENAME,
    QUESTS_FILENAME,
    RECEIPTS_FILENAME,
    check_data_dir,
    token_path,
)
from questledger.collaborators.local import LocalReceiptRegistry, LocalRewardToken
from questledger.config import DEFAULT_CONFIG_DIR, LedgerParams
from questledger.persistence.event_log import EventLog
from questledger.persistence.state_store import QuestStateStore
from questledger.service import QuestService, ServiceResult


DEFAULT_DATA = Path(__file__).resolve().parents[2] / "data"
DEFAULT_ASSET = "RTC"


class _Workspace:
    """The service plus the local collaborators it is wired to."""

    def __init__(self, config_dir: Path, data_dir: Path, asset: str) -> None:
        data_dir.mkdir(parents=True, exist_ok=True)
        self.token = LocalRewardToken(asset, storage_path=token_path(data_dir, asset))
        self.receipts = LocalReceiptRegistry(storage_path=data_dir / RECEIPTS_FILENAME)
        self.service = QuestService(
            self.receipts,
            {asset: self.token},
            ledger_params=LedgerParams.from_config_dir(config_dir),
            event_log=EventLog(storage_path=data_dir / EVENTS_FILENAME),
            state_store=QuestStateStore(storage_path=data_dir / QUESTS_FILENAME),
        )


def _workspace(args: argparse.Namespace) -> _Workspace:
    return _Workspace(args.config, args.data, args.asset)


def _report(result: ServiceResult) -> int:
    if result.success:
        print(json.dumps(result.data, indent=2, default=str))
        return 0
    code = result.data.get("code", "error")
    print(f"Failed ({code}): {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def cmd_status(args: argparse.Namespace) -> int:
    ws = _workspace(args)
    if args.quest:
        return _report(ws.service.quest_status(args.quest, now=args.now))
    print(json.dumps(ws.service.status(), indent=2))
    return 0


def cmd_create_quest(args: argparse.Namespace) -> int:
    ws = _workspace(args)
    result = ws.service.create_quest(
        quest_id=args.id,
        owner=args.owner,
        address=args.address or f"quest:{args.id}",
        reward_asset_ref=args.asset,
        total_budget=args.budget,
        reward_per_credential=args.reward,
        start_time=args.start,
        end_time=args.end,
        fee_rate_bps=args.fee_bps,
        allow_list_ref=args.allow_list,
        now=args.now,
    )
    return _report(result)


def cmd_fund(args: argparse.Namespace) -> int:
    """Credit the quest address, from a holder or by minting."""
    ws = _workspace(args)
    quest = ws.service.get_quest(args.quest)
    if quest is None:
        print(f"Failed (unknown_quest): Quest not found: {args.quest}", file=sys.stderr)
        return 1
    try:
        if args.sender:
            if not ws.token.transfer(args.sender, quest.address, args.amount):
                print(
                    f"Failed (transfer_failed): {args.sender} cannot cover {args.amount}",
                    file=sys.stderr,
                )
                return 1
        else:
            ws.token.mint(quest.address, args.amount)
    except ValueError as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    print(json.dumps({"quest_id": args.quest, "balance": quest.balance()}, indent=2))
    return 0


def cmd_mint_receipts(args: argparse.Namespace) -> int:
    ws = _workspace(args)
    try:
        ids = ws.receipts.mint(args.to, args.quantity, args.quest, now=args.now)
    except ValueError as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    print(json.dumps({"quest_id": args.quest, "owner": args.to, "receipt_ids": ids}, indent=2))
    return 0


def cmd_start(args: argparse.Namespace) -> int:
    return _report(_workspace(args).service.start_quest(args.quest, args.caller, now=args.now))


def cmd_pause(args: argparse.Namespace) -> int:
    return _report(_workspace(args).service.pause_quest(args.quest, args.caller))


def cmd_unpause(args: argparse.Namespace) -> int:
    return _report(_workspace(args).service.unpause_quest(args.quest, args.caller))


def cmd_set_allow_list(args: argparse.Namespace) -> int:
    return _report(
        _workspace(args).service.set_allow_list(args.quest, args.caller, args.ref)
    )


def cmd_claim(args: argparse.Namespace) -> int:
    return _report(_workspace(args).service.claim(args.quest, args.caller, now=args.now))


def cmd_withdraw(args: argparse.Namespace) -> int:
    return _report(_workspace(args).service.withdraw(args.quest, args.caller, now=args.now))


def cmd_withdraw_fee(args: argparse.Namespace) -> int:
    return _report(
        _workspace(args).service.withdraw_fee(args.quest, args.caller, now=args.now)
    )


def cmd_is_claimed(args: argparse.Namespace) -> int:
    return _report(_workspace(args).service.is_claimed(args.quest, args.token_id))


def cmd_token_uri(args: argparse.Namespace) -> int:
    ws = _workspace(args)
    try:
        quest_id = ws.receipts.quest_of(args.token_id)
    except ValueError as e:
        print(f"Failed: {e}", file=sys.stderr)
        return 1
    quest = ws.service.get_quest(quest_id)
    if quest is None:
        print(f"Failed (unknown_quest): Quest not found: {quest_id}", file=sys.stderr)
        return 1
    print(ws.receipts.token_uri(
        args.token_id,
        claimed=quest.is_claimed(args.token_id),
        reward_amount=quest.params.reward_per_credential,
        reward_address=quest.params.reward_asset_ref,
        symbol=ws.token.asset_ref,
        decimals=ws.token.decimals,
    ))
    return 0


def cmd_check_invariants(args: argparse.Namespace) -> int:
    """Run quest invariant checks over the data directory."""
    errors = check_data_dir(args.config, args.data)
    if errors:
        print("Invariant check failed:")
        for err in errors:
            print(f"- {err}")
        return 1
    print("Invariant check passed.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="questledger",
        description="questledger — time-gated quest reward accounting CLI",
    )
    parser.add_argument(
        "--config", type=Path, default=DEFAULT_CONFIG_DIR,
        help="Config directory (default: ./config)",
    )
    parser.add_argument(
        "--data", type=Path, default=DEFAULT_DATA,
        help="Data directory for quests, events, balances and receipts",
    )
    parser.add_argument(
        "--asset", default=DEFAULT_ASSET,
        help=f"Local reward token symbol (default: {DEFAULT_ASSET})",
    )
    parser.add_argument(
        "--now", type=int, default=None,
        help="Override the clock (unix seconds)",
    )
    parser.add_argument(
        "--log-level", default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )
    sub = parser.add_subparsers(dest="command")

    # status
    p_status = sub.add_parser("status", help="Show service or quest status")
    p_status.add_argument("--quest", help="Quest ID (default: service summary)")

    # create-quest
    p_create = sub.add_parser("create-quest", help="Create a new quest")
    p_create.add_argument("--id", required=True, help="Quest ID")
    p_create.add_argument("--owner", required=True, help="Owner identity")
    p_create.add_argument("--address", help="Quest address (default: quest:<id>)")
    p_create.add_argument("--budget", type=int, required=True, help="Total budget (base units)")
    p_create.add_argument("--reward", type=int, required=True, help="Reward per receipt (base units)")
    p_create.add_argument("--start", type=int, required=True, help="Start time (unix seconds)")
    p_create.add_argument("--end", type=int, required=True, help="End time (unix seconds)")
    p_create.add_argument("--fee-bps", type=int, default=None, help="Fee rate in basis points")
    p_create.add_argument("--allow-list", default="", help="Allow-list reference")

    # fund
    p_fund = sub.add_parser("fund", help="Fund a quest address")
    p_fund.add_argument("--quest", required=True, help="Quest ID")
    p_fund.add_argument("--amount", type=int, required=True, help="Amount (base units)")
    p_fund.add_argument("--from", dest="sender", help="Holder to transfer from (default: mint)")

    # mint-receipts
    p_mint = sub.add_parser("mint-receipts", help="Mint quest receipts to a holder")
    p_mint.add_argument("--quest", required=True, help="Quest ID")
    p_mint.add_argument("--to", required=True, help="Receipt holder")
    p_mint.add_argument("--quantity", type=int, default=1)

    # owner and claimant operations
    for name, help_text in (
        ("start", "Start a quest"),
        ("pause", "Pause claims"),
        ("unpause", "Resume claims"),
        ("claim", "Claim rewards for held receipts"),
        ("withdraw", "Withdraw remaining principal after end time"),
        ("withdraw-fee", "Withdraw accrued protocol fee"),
    ):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("--quest", required=True, help="Quest ID")
        p.add_argument("--caller", required=True, help="Calling identity")

    # set-allow-list
    p_allow = sub.add_parser("set-allow-list", help="Replace the allow-list reference")
    p_allow.add_argument("--quest", required=True, help="Quest ID")
    p_allow.add_argument("--caller", required=True, help="Calling identity")
    p_allow.add_argument("--ref", required=True, help="Allow-list reference")

    # is-claimed
    p_claimed = sub.add_parser("is-claimed", help="Check whether a receipt has claimed")
    p_claimed.add_argument("--quest", required=True, help="Quest ID")
    p_claimed.add_argument("--token-id", type=int, required=True, help="Receipt ID")

    # token-uri
    p_uri = sub.add_parser("token-uri", help="Render receipt metadata")
    p_uri.add_argument("--token-id", type=int, required=True, help="Receipt ID")

    # check-invariants
    sub.add_parser("check-invariants", help="Run quest invariant checks")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "status": cmd_status,
        "create-quest": cmd_create_quest,
        "fund": cmd_fund,
        "mint-receipts": cmd_mint_receipts,
        "start": cmd_start,
        "pause": cmd_pause,
        "unpause": cmd_unpause,
        "set-allow-list": cmd_set_allow_list,
        "claim": cmd_claim,
        "withdraw": cmd_withdraw,
        "withdraw-fee": cmd_withdraw_fee,
        "is-claimed": cmd_is_claimed,
        "token-uri": cmd_token_uri,
        "check-invariants": cmd_check_invariants,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
