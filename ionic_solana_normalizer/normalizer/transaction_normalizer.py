# Copyright (C) 2025, Ionic.

# This program is licensed under the Apache License 2.0.
# See LICENSE or go to <https://www.apache.org/licenses/LICENSE-2.0> for full license details.


"""Normalize raw transactions into balance deltas, inferred transfers and call trees.

Transfers are reconstructed from the before/after balance snapshots in the
transaction meta, not from parsed transfer instructions.

Native transfers use a first-match pairing: each account whose lamport balance
dropped by `n` is paired with the first account (lowest index) whose balance
rose by exactly `n`. When several accounts move the same amount in opposite
directions (fee redistribution plus a transfer of the same size, for example)
the pairing can attribute a transfer to the wrong receiver. This is a known
limitation of the heuristic and the output depends on it, so it is kept as is.
"""

from __future__ import annotations

import msgspec
from loguru import logger

from ionic_solana_normalizer.errors import InvalidInputError
from ionic_solana_normalizer.block.transactions.raw_transaction import (
    RawTransaction, TransactionsMeta, InstructionField, UiTokenAmount,
    TokenBalanceChange as RawTokenBalance,
)
from ionic_solana_normalizer.block.transactions.normalized_transaction import (
    NormalizedTransaction, NativeTransfer, TokenTransfer, AccountData,
    TokenBalanceChange, RawTokenAmount, Instruction, InnerInstruction,
    TransactionFailure,
)


def _resolve(account_keys: list[str], index: int) -> str | None:
    if 0 <= index < len(account_keys):
        return account_keys[index]
    return None


def _raw_amount(amount: UiTokenAmount) -> int:
    try:
        return int(amount.amount)
    except ValueError as e:
        raise InvalidInputError(f"Invalid raw token amount {amount.amount!r}") from e


def infer_native_transfers(account_keys: list[str], meta: TransactionsMeta) -> list[NativeTransfer]:
    """Pairs every negative lamport delta with the first exactly offsetting positive delta."""
    pre, post = meta.preBalances, meta.postBalances
    common = min(len(pre), len(post))
    transfers = []

    for i in range(common):
        difference = post[i] - pre[i]
        if difference >= 0:
            continue

        receiver = next((j for j in range(common) if pre[j] - post[j] == difference), None)
        if receiver is None:
            continue

        sender_key = _resolve(account_keys, i)
        receiver_key = _resolve(account_keys, receiver)
        if sender_key is None or receiver_key is None:
            logger.debug(f"Dropping native transfer {i} -> {receiver}: index outside account keys")
            continue

        transfers.append(NativeTransfer(
            fromUserAccount=sender_key,
            toUserAccount=receiver_key,
            amount=-difference,
        ))

    return transfers


def infer_token_transfers(account_keys: list[str], meta: TransactionsMeta) -> list[TokenTransfer]:
    """Emits one transfer per token account whose balance changed between pre and post state."""
    pre_by_index: dict[int, RawTokenBalance] = {}
    for pre_balance in meta.preTokenBalances or []:
        pre_by_index.setdefault(pre_balance.accountIndex, pre_balance)

    transfers = []
    for post_balance in meta.postTokenBalances or []:
        pre_balance = pre_by_index.get(post_balance.accountIndex)
        # No baseline, no delta
        if pre_balance is None:
            continue

        pre_amount = _raw_amount(pre_balance.uiTokenAmount)
        post_amount = _raw_amount(post_balance.uiTokenAmount)
        if pre_amount == post_amount:
            continue

        from_token_account = _resolve(account_keys, pre_balance.accountIndex)
        to_token_account = _resolve(account_keys, post_balance.accountIndex)
        if from_token_account is None or to_token_account is None:
            logger.debug(f"Dropping token transfer at index {post_balance.accountIndex}: outside account keys")
            continue

        transfers.append(TokenTransfer(
            fromUserAccount=pre_balance.owner or "",
            toUserAccount=post_balance.owner or "",
            fromTokenAccount=from_token_account,
            toTokenAccount=to_token_account,
            tokenAmount=(post_amount - pre_amount) / 10 ** post_balance.uiTokenAmount.decimals,
            mint=post_balance.mint,
        ))

    return transfers


def build_account_data(account_keys: list[str], meta: TransactionsMeta) -> list[AccountData]:
    """Builds exactly one entry per account key, in account key order."""
    account_data = []
    post_token_balances = meta.postTokenBalances or []

    for index, account in enumerate(account_keys):
        pre_balance = meta.preBalances[index] if index < len(meta.preBalances) else 0
        post_balance = meta.postBalances[index] if index < len(meta.postBalances) else 0

        token_balance_changes = tuple(
            TokenBalanceChange(
                userAccount=token_balance.owner or "",
                tokenAccount=account,
                mint=token_balance.mint,
                rawTokenAmount=RawTokenAmount(
                    tokenAmount=token_balance.uiTokenAmount.amount,
                    decimals=token_balance.uiTokenAmount.decimals,
                ),
            )
            for token_balance in post_token_balances
            if token_balance.accountIndex == index
        )

        account_data.append(AccountData(
            account=account,
            nativeBalanceChange=post_balance - pre_balance,
            tokenBalanceChanges=token_balance_changes,
        ))

    return account_data


def _convert_inner_instruction(instruction: InstructionField) -> InnerInstruction:
    return InnerInstruction(
        programId=instruction.programId or "",
        accounts=tuple(instruction.accounts or ()),
        data=instruction.data or "",
    )


def build_instructions(raw: RawTransaction) -> list[Instruction]:
    """Mirrors the top-level instructions, attaching the inner group with the matching index."""
    inner_by_index: dict[int, list[InstructionField]] = {}
    for inner in raw.meta.innerInstructions or []:
        inner_by_index.setdefault(inner.index, inner.instructions)

    instructions = []
    for position, instruction in enumerate(raw.transaction.message.instructions):
        inner_instructions = tuple(
            _convert_inner_instruction(inner_ix) for inner_ix in inner_by_index.get(position, [])
        )

        # Parsed variants only get a placeholder record
        if instruction.is_partially_decoded():
            instructions.append(Instruction(
                programId=instruction.programId,
                accounts=tuple(instruction.accounts or ()),
                data=instruction.data or "",
                innerInstructions=inner_instructions,
            ))
        else:
            instructions.append(Instruction(innerInstructions=inner_instructions))

    return instructions


def normalize(raw: RawTransaction, signature: str) -> NormalizedTransaction:
    """Maps one raw transaction record to one normalized transaction.

    Raises:
        InvalidInputError: the record has no meta or no account keys.
    """
    if raw is None or raw.meta is None:
        raise InvalidInputError(f"Transaction {signature} has no meta")

    account_keys = raw.account_keys
    if not account_keys:
        raise InvalidInputError(f"Transaction {signature} has no account keys")

    meta = raw.meta
    transaction_error = None
    if meta.err is not None:
        transaction_error = TransactionFailure(error=msgspec.json.encode(meta.err).decode("utf-8"))

    return NormalizedTransaction(
        signature=signature,
        slot=raw.slot,
        timestamp=raw.blockTime or 0,
        fee=meta.fee,
        feePayer=account_keys[0],
        nativeTransfers=tuple(infer_native_transfers(account_keys, meta)),
        tokenTransfers=tuple(infer_token_transfers(account_keys, meta)),
        accountData=tuple(build_account_data(account_keys, meta)),
        instructions=tuple(build_instructions(raw)),
        transactionError=transaction_error,
    )
