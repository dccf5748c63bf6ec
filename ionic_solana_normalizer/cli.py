# Copyright (C) 2025, Ionic.

# This program is licensed under the Apache License 2.0.
# See LICENSE or go to <https://www.apache.org/licenses/LICENSE-2.0> for full license details.


"""
Command line entry point.

Modes:
1. historical: backfill and print transactions of an address inside a time window
2. live: stream transactions of an address until interrupted
"""

import argparse
import asyncio
import sys
from typing import Optional

from loguru import logger

from ionic_solana_normalizer.errors import FetchError, InvalidInputError
from ionic_solana_normalizer.data_source.rpc.rpc_data_source import SolanaRPCDataSource
from ionic_solana_normalizer.historical.historical_fetcher import HistoricalFetcher, TimeRange
from ionic_solana_normalizer.live.live_monitor import LiveMonitor
from ionic_solana_normalizer.utils.console_reporter import report_token_changes


async def run_historical(args: argparse.Namespace) -> int:
    data_source = SolanaRPCDataSource(rpc_url=args.rpc_url)
    await data_source.connect()
    try:
        fetcher = HistoricalFetcher(data_source)
        transactions = await fetcher.fetch_historical(
            args.address,
            TimeRange(from_timestamp=args.from_timestamp, to_timestamp=args.to_timestamp),
            batch_size=args.batch_size,
            count=args.count,
        )
    except FetchError as e:
        logger.error(f"Error fetching historical transactions: {e} ({e.__cause__})")
        return 1
    finally:
        await data_source.disconnect()

    for transaction in transactions:
        report_token_changes(transaction)
    return 0


async def run_live(args: argparse.Namespace) -> int:
    monitor = LiveMonitor(args.address, report_token_changes, ws_url=args.ws_url)
    await monitor.run()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Normalize Solana transactions of an address")
    parser.add_argument("--log-file", default="solana_transactions.log", help="Rotating log file path")
    subparsers = parser.add_subparsers(dest="mode", required=True)

    historical = subparsers.add_parser("historical", help="Backfill past transactions")
    historical.add_argument("address", help="Address to fetch")
    historical.add_argument("--from", dest="from_timestamp", type=int, help="Oldest block time (Unix seconds)")
    historical.add_argument("--to", dest="to_timestamp", type=int, help="Newest block time (Unix seconds)")
    historical.add_argument("--count", type=int, default=100, help="Maximum number of transactions")
    historical.add_argument("--batch-size", type=int, default=1000, help="Signatures per page")
    historical.add_argument("--rpc-url", help="RPC endpoint (default: SOLANA_RPC_URL)")

    live = subparsers.add_parser("live", help="Stream new transactions")
    live.add_argument("address", help="Address to watch")
    live.add_argument("--ws-url", help="WebSocket endpoint (default: SOLANA_WS_URL or HELIUS_API_KEY)")

    return parser


def main(argv: Optional[list] = None) -> None:
    args = build_parser().parse_args(argv)
    logger.add(args.log_file, rotation="10 MB")

    runner = run_historical if args.mode == "historical" else run_live
    try:
        sys.exit(asyncio.run(runner(args)))
    except (InvalidInputError, ValueError) as e:
        logger.error(e)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
