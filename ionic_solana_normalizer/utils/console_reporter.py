# Copyright (C) 2025, Ionic.

# This program is licensed under the Apache License 2.0.
# See LICENSE or go to <https://www.apache.org/licenses/LICENSE-2.0> for full license details.


"""Observer that logs the token changes of normalized transactions."""

from loguru import logger

from ionic_solana_normalizer.block.transactions.normalized_transaction import NormalizedTransaction
from ionic_solana_normalizer.utils.known_accounts import obfuscate_pubkey


def format_token_changes(transaction: NormalizedTransaction) -> str:
    lines = [
        f"\t{obfuscate_pubkey(transfer.toUserAccount)}: {transfer.tokenAmount} {obfuscate_pubkey(transfer.mint)}"
        for transfer in transaction.tokenTransfers
    ]
    return f"{transaction.signature} Token changes:\n" + "\n".join(lines)


def report_token_changes(transaction: NormalizedTransaction) -> None:
    logger.info(format_token_changes(transaction))
