#!/usr/bin/env python3
"""
Lumen Supply Stats - Main Script

Computes Stellar lumen supply figures (total, circulating, program
distributions) from Horizon and serves the cached snapshot over HTTP.

Usage:
    python main.py serve --port 5000
    python main.py serve --cache redis://localhost:6379/0
    python main.py snapshot --json
"""

import argparse
import json
import logging
from pathlib import Path

import uvicorn

from accounts import DEFAULT_ACCOUNTS_FILE, load_registry
from lumens import CACHE_URL, HORIZON_URL, PORT, REFRESH_INTERVAL_SECONDS
from lumens.api import create_app
from lumens.balance import BalanceFetcher
from lumens.cache import SnapshotCell, open_cache
from lumens.horizon import HorizonClient
from lumens.refresh import Refresher
from lumens.supply import SupplyAggregator
from lumens.utils import format_xlm


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Lumen Supply Stats - Stellar supply metrics from Horizon",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--horizon-url", default=HORIZON_URL, help="Horizon base URL")
    parser.add_argument("--accounts", default=str(DEFAULT_ACCOUNTS_FILE), help="Accounts registry file")
    parser.add_argument("--cache", default=CACHE_URL, help="Cache URL (redis://..., file://dir, empty for memory)")

    commands = parser.add_subparsers(dest="command", required=True)

    serve = commands.add_parser("serve", help="Refresh periodically and serve over HTTP")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=PORT)
    serve.add_argument("--interval", type=float, default=REFRESH_INTERVAL_SECONDS, help="Refresh interval (seconds)")

    snapshot = commands.add_parser("snapshot", help="Compute one snapshot and print it")
    snapshot.add_argument("--json", action="store_true", help="Print the full JSON snapshot")
    snapshot.add_argument("--publish", action="store_true", help="Also write it to the cache")

    return parser.parse_args(argv)


def build_aggregator(args) -> SupplyAggregator:
    file_path = Path(args.accounts)
    if not file_path.exists():
        file_path = Path(__file__).parent / args.accounts
    registry = load_registry(file_path)
    logger.info(f"Loaded {len(registry.all_accounts())} accounts from {file_path.name}")

    client = HorizonClient(args.horizon_url)
    return SupplyAggregator(BalanceFetcher(client), registry, client=client)


def run_snapshot(args) -> int:
    print("=" * 60)
    print("Lumen Supply Stats - Snapshot")
    print("=" * 60)

    print("\n[1/3] Loading accounts...")
    aggregator = build_aggregator(args)

    print(f"\n[2/3] Querying {args.horizon_url}...")
    try:
        snapshot = aggregator.snapshot()
    except Exception as e:
        logger.error(f"Snapshot failed: {e}")
        return 1

    print("\n[3/3] Results")
    if args.json:
        print(json.dumps(snapshot.to_dict(), indent=2))
    else:
        rows = [
            ("Ledger", str(snapshot.ledger_sequence)),
            ("Original supply", format_xlm(snapshot.original_supply)),
            ("Inflation", format_xlm(snapshot.inflation)),
            ("Burned", format_xlm(snapshot.burned)),
            ("Total supply", format_xlm(snapshot.total_supply)),
            ("Upgrade reserve", format_xlm(snapshot.upgrade_reserve)),
            ("Fee pool", format_xlm(snapshot.fee_pool)),
            ("SDF mandate", format_xlm(snapshot.sdf_mandate)),
            ("Non-circulating", format_xlm(snapshot.non_circulating_supply)),
            ("Circulating supply", format_xlm(snapshot.circulating_supply)),
        ]
        for label, value in rows:
            print(f"  {label:<20} {value:>28}")

    if args.publish:
        SnapshotCell(open_cache(args.cache)).publish(snapshot)
        print(f"\n  Published to {args.cache or 'memory'}")

    print("\n" + "=" * 60)
    print("COMPLETED!")
    print("=" * 60)
    return 0


def run_server(args) -> int:
    aggregator = build_aggregator(args)
    cell = SnapshotCell(open_cache(args.cache))
    refresher = Refresher(aggregator, cell, interval=args.interval)
    app = create_app(cell, refresher)

    refresher.start()
    try:
        uvicorn.run(app, host=args.host, port=args.port)
    finally:
        refresher.stop(timeout=5)
    return 0


def main(argv=None):
    args = parse_args(argv)
    if args.command == "serve":
        return run_server(args)
    return run_snapshot(args)


if __name__ == "__main__":
    exit(main())
