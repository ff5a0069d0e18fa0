# MIT License
# Copyright (c) 2025 Hashborn

import argparse
import sys
import json
import requests
import os
from decimal import Decimal
from protocol.types.tx import Transaction
from protocol.config.params import DENOM
from protocol.config.economic_model import DECIMALS

DEFAULT_NODE = "http://localhost:8333"

def to_units(amount) -> int:
    """Whole-coin amount (str, Decimal or number) to minimal units, without float rounding."""
    return int(Decimal(str(amount)) * DECIMALS)

def get_node_url(args):
    return args.node or os.environ.get("PROPPOOL_NODE", DEFAULT_NODE)

def _get(args, path):
    url = get_node_url(args)
    try:
        resp = requests.get(f"{url}{path}", timeout=10)
    except requests.RequestException as e:
        print(f"Connection error: {e}")
        sys.exit(1)
    if resp.status_code != 200:
        print(f"Error: {resp.text}")
        sys.exit(1)
    return resp.json()

def _print_json(data):
    print(json.dumps(data, indent=2))

# --- Query Commands ---
def cmd_query_status(args):
    data = _get(args, "/status")
    print(f"Round:          {data['round_id']} ({data['state']})")
    print(f"Template:       {data['template_id']}")
    print(f"Block:          {data['chain_length']}")
    print(f"Round shares:   {data['round_shares']} from {data['round_workers']} worker(s)")
    print(f"Pending txs:    {data['pending_tx_count']}")
    print(f"Rounds done:    {data['rounds_completed']}")

def cmd_query_round(args):
    _print_json(_get(args, "/round"))

def cmd_query_ledger(args):
    data = _get(args, "/ledger")
    contributions = data["contributions"]
    if not contributions:
        print(f"No shares yet in round {data['round_id']}.")
        return

    total = data["total_shares"]
    print(f"{'Worker':<45} {'Shares':>8} {'Share %':>8}")
    print("-" * 63)
    for address, count in contributions.items():
        print(f"{address:<45} {count:>8} {count / total * 100:>7.1f}%")

def cmd_query_summary(args):
    data = _get(args, f"/rounds/{args.round_id}")
    print(f"Round {data['round_id']} won by {data['winner']} ({data['total_shares']} shares)")
    for p in data["payouts"]:
        who = "operator" if p["is_operator"] else f"{p['shares']} share(s)"
        print(f"  {p['address']:<45} {p['amount'] / DECIMALS:>12} {DENOM}  ({who})")
    if data["undistributed"]:
        print(f"  undistributed: {data['undistributed'] / DECIMALS} {DENOM}")
    if data["failed_payouts"]:
        print(f"  FAILED: {', '.join(data['failed_payouts'])}")

def cmd_query_payout(args):
    _print_json(_get(args, f"/payouts/{args.tx_hash}"))

def cmd_query_failed(args):
    failed = _get(args, "/payouts?status=failed")
    if not failed:
        print("No failed payouts.")
        return
    for r in failed:
        print(f"round {r['round_id']:>5}  {r['address']:<45} {r['amount'] / DECIMALS} {DENOM}  {r['error']}")

# --- Tx Commands ---
def cmd_tx_send(args):
    url = get_node_url(args)
    tx = Transaction(
        from_address=args.from_address,
        to_address=args.to_address,
        amount=to_units(args.amount),
        fee=to_units(args.fee),
        nonce=args.nonce,
    )
    try:
        resp = requests.post(f"{url}/tx/send", json=tx.model_dump(), timeout=10)
    except requests.RequestException as e:
        print(f"Connection error: {e}")
        sys.exit(1)

    if resp.status_code != 200:
        print(f"Rejected: {resp.text}")
        sys.exit(1)
    data = resp.json()
    print(f"Tx {data['tx_hash']}: {data['status']}")

def main():
    parser = argparse.ArgumentParser(description="PropPool Client CLI")
    parser.add_argument("--node", help=f"Pool RPC URL (default: {DEFAULT_NODE})")

    subparsers = parser.add_subparsers(dest="command", required=True)

    # Query
    p_query = subparsers.add_parser("query", help="Query pool state")
    sp_query = p_query.add_subparsers(dest="subcommand", required=True)

    sp_query.add_parser("status", help="Current round status")
    sp_query.add_parser("round", help="Current block template")
    sp_query.add_parser("ledger", help="Share counts for the open round")

    pq_summary = sp_query.add_parser("summary", help="Summary of a finalized round")
    pq_summary.add_argument("round_id", type=int, help="Round id")

    pq_payout = sp_query.add_parser("payout", help="Payout receipt by tx hash")
    pq_payout.add_argument("tx_hash", help="Payout transaction hash")

    sp_query.add_parser("failed-payouts", help="Payouts that failed to post")

    # Tx
    p_tx = subparsers.add_parser("tx", help="Submit transactions for the next block")
    sp_tx = p_tx.add_subparsers(dest="subcommand", required=True)

    pt_send = sp_tx.add_parser("send", help=f"Send {DENOM}")
    pt_send.add_argument("to_address", help="Recipient address")
    pt_send.add_argument("amount", type=Decimal, help=f"Amount in {DENOM}")
    pt_send.add_argument("--from", dest="from_address", default="", help="Sender address")
    pt_send.add_argument("--fee", type=Decimal, default=Decimal("0"), help=f"Fee in {DENOM}")
    pt_send.add_argument("--nonce", type=int, default=0, help="Sender nonce")

    args = parser.parse_args()

    handlers = {
        ("query", "status"): cmd_query_status,
        ("query", "round"): cmd_query_round,
        ("query", "ledger"): cmd_query_ledger,
        ("query", "summary"): cmd_query_summary,
        ("query", "payout"): cmd_query_payout,
        ("query", "failed-payouts"): cmd_query_failed,
        ("tx", "send"): cmd_tx_send,
    }
    handlers[(args.command, args.subcommand)](args)

if __name__ == "__main__":
    main()
