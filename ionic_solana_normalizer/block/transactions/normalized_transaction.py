# Copyright (C) 2025, Ionic.

# This program is licensed under the Apache License 2.0.
# See LICENSE or go to <https://www.apache.org/licenses/LICENSE-2.0> for full license details.

"""Normalized, analysis-ready transaction structures."""
from __future__ import annotations

from msgspec import Struct


class NativeTransfer(Struct, frozen=True):
    fromUserAccount: str

    toUserAccount: str

    amount: int
    """Lamports moved, always positive"""


class TokenTransfer(Struct, frozen=True):
    fromUserAccount: str
    """Owner of the source token account, empty string if unknown"""

    toUserAccount: str
    """Owner of the destination token account, empty string if unknown"""

    fromTokenAccount: str

    toTokenAccount: str

    tokenAmount: float
    """
    Post amount minus pre amount in UI units.
    A negative value means the account listed as `to` actually sent the tokens.
    """

    mint: str


class RawTokenAmount(Struct, frozen=True):
    tokenAmount: str

    decimals: int


class TokenBalanceChange(Struct, frozen=True):
    userAccount: str

    tokenAccount: str

    mint: str

    rawTokenAmount: RawTokenAmount
    """Post-execution balance, not a delta"""


class AccountData(Struct, frozen=True):
    account: str

    nativeBalanceChange: int

    tokenBalanceChanges: tuple[TokenBalanceChange, ...] = ()


class InnerInstruction(Struct, frozen=True):
    programId: str = ""

    accounts: tuple[str, ...] = ()

    data: str = ""


class Instruction(Struct, frozen=True):
    programId: str = ""
    """Empty for instructions delivered in the parsed variant"""

    accounts: tuple[str, ...] = ()

    data: str = ""

    innerInstructions: tuple[InnerInstruction, ...] = ()


class TransactionFailure(Struct, frozen=True):
    error: str
    """JSON text of the raw `meta.err` value"""


class NormalizedTransaction(Struct, frozen=True):
    signature: str

    slot: int

    timestamp: int
    """Block time as Unix timestamp, 0 if unknown"""

    fee: int

    feePayer: str

    nativeTransfers: tuple[NativeTransfer, ...] = ()

    tokenTransfers: tuple[TokenTransfer, ...] = ()

    accountData: tuple[AccountData, ...] = ()

    instructions: tuple[Instruction, ...] = ()

    transactionError: TransactionFailure | None = None

    @property
    def is_successful(self) -> bool:
        return self.transactionError is None
