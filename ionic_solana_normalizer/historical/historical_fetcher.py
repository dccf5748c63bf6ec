# Copyright (C) 2025, Ionic.

# This program is licensed under the Apache License 2.0.
# See LICENSE or go to <https://www.apache.org/licenses/LICENSE-2.0> for full license details.


"""Time-windowed historical backfill walking an address' signature history backwards."""

import time
from datetime import datetime, timezone
from typing import List, Optional

from loguru import logger
from msgspec import Struct

from ionic_solana_normalizer.errors import FetchError, InvalidInputError
from ionic_solana_normalizer.data_source.data_source import BaseDataSource
from ionic_solana_normalizer.data_source.rpc.model import SignatureInfo
from ionic_solana_normalizer.block.transactions.normalized_transaction import NormalizedTransaction
from ionic_solana_normalizer.normalizer.transaction_normalizer import normalize
from ionic_solana_normalizer.utils.address import validate_address

DEFAULT_WINDOW_SECONDS = 24 * 3600


class TimeRange(Struct, frozen=True):
    """Inclusive window in Unix seconds. Unset bounds default to the last 24 hours."""
    from_timestamp: Optional[int] = None
    to_timestamp: Optional[int] = None


def _format_block_time(block_time: Optional[int]) -> str:
    return datetime.fromtimestamp(block_time or 0, tz=timezone.utc).strftime("%a, %d %b %Y %H:%M:%S UTC")


class HistoricalFetcher:
    """Fetches and normalizes past transactions of one address.

    One outstanding request at a time, no state shared between calls.
    """

    def __init__(self, data_source: BaseDataSource):
        self.data_source = data_source

    async def fetch_historical(
            self,
            address: str,
            time_range: TimeRange = TimeRange(),
            batch_size: int = 1000,
            count: int = 100
    ) -> List[NormalizedTransaction]:
        """Returns at most `count` normalized transactions inside `time_range`, newest first.

        Raises:
            InvalidInputError: `address` is not a valid public key.
            FetchError: signature listing or transaction resolution failed.
        """
        address = validate_address(address)
        logger.info(f"Fetching transactions for {address}")

        now = time.time()
        to_timestamp = time_range.to_timestamp or now
        from_timestamp = time_range.from_timestamp or now - DEFAULT_WINDOW_SECONDS

        transactions: List[NormalizedTransaction] = []
        before: Optional[str] = None
        oldest_seen = now

        while oldest_seen >= from_timestamp:
            page = await self._list_signatures(address, before, batch_size)
            if not page:
                break

            signatures: List[str] = []
            for info in page:
                if not info.blockTime:
                    continue
                if info.blockTime > to_timestamp:
                    continue
                if info.blockTime < from_timestamp:
                    oldest_seen = from_timestamp - 1
                    break
                if len(signatures) + len(transactions) >= count:
                    break
                signatures.append(info.signature)
                oldest_seen = info.blockTime

            if signatures:
                transactions.extend(await self._resolve(signatures))

            # Nothing accepted means the whole page was newer than the window
            before = signatures[-1] if signatures else page[-1].signature

            logger.info(
                f"Fetched {len(page)} signatures from {_format_block_time(page[0].blockTime)} "
                f"to {_format_block_time(page[-1].blockTime)}"
            )
            if len(page) < batch_size or len(transactions) >= count:
                break

        logger.success(f"Fetched {len(transactions)} transactions for {address}")
        return sorted(transactions, key=lambda tx: tx.timestamp, reverse=True)

    async def _list_signatures(self, address: str, before: Optional[str], limit: int) -> List[SignatureInfo]:
        try:
            return await self.data_source.get_signatures_for_address(address, before=before, limit=limit)
        except Exception as e:
            logger.error(f"Error listing signatures for {address}: {e}")
            raise FetchError(f"Failed to list signatures for {address}") from e

    async def _resolve(self, signatures: List[str]) -> List[NormalizedTransaction]:
        try:
            raw_transactions = await self.data_source.get_parsed_transactions(
                signatures, max_supported_transaction_version=0
            )
        except Exception as e:
            logger.error(f"Error resolving {len(signatures)} transactions: {e}")
            raise FetchError(f"Failed to resolve {len(signatures)} transactions") from e

        normalized = []
        for signature, raw in zip(signatures, raw_transactions):
            if raw is None:
                logger.debug(f"Transaction {signature} could not be resolved, skipping")
                continue
            try:
                normalized.append(normalize(raw, signature))
            except InvalidInputError as e:
                logger.warning(f"Skipping transaction {signature}: {e}")

        return normalized
