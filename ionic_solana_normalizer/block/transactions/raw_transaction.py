"""RawTransaction structures for parsing Solana `jsonParsed` transaction responses."""

from __future__ import annotations
from typing import Any, Literal, Optional
from msgspec import Struct, field


class UiTokenAmount(Struct):
    """Token amount with UI representation."""
    amount: str
    decimals: int
    uiAmount: float | None = None
    uiAmountString: Optional[str] = None


class TokenBalanceChange(Struct):
    """Token balance of one token account, before or after execution."""
    accountIndex: int
    mint: str
    uiTokenAmount: UiTokenAmount
    owner: Optional[str] = None
    programId: Optional[str] = None


class InstructionField(Struct):
    """Individual instruction within a transaction.

    `jsonParsed` encoding yields one of two shapes: the partially decoded one
    (`programId`, `accounts`, `data`) or the parsed one (`program`,
    `programId`, `parsed`).
    """
    programId: Optional[str] = None
    stackHeight: int | None = None
    program: Optional[str] = None
    parsed: Optional[dict | str] = None
    data: Optional[str] = None
    accounts: Optional[list[str]] = None

    def is_parsed(self) -> bool:
        """Check if instruction comes in the parsed variant."""
        return self.program is not None or self.parsed is not None

    def is_partially_decoded(self) -> bool:
        """Check if instruction exposes the direct programId/accounts/data shape."""
        return self.programId is not None and not self.is_parsed()


class InnerInstruction(Struct):
    """Inner instruction with index and instruction list."""
    index: int
    instructions: list[InstructionField]


class AccountKey(Struct):
    """Account key with metadata."""
    pubkey: str
    signer: bool = False
    writable: bool = False
    source: Optional[str] = None


class TransactionMessage(Struct):
    """Transaction message containing instructions and account keys."""
    accountKeys: list[AccountKey] = field(default_factory=list)
    instructions: list[InstructionField] = field(default_factory=list)
    recentBlockhash: Optional[str] = None
    addressTableLookups: Optional[list[dict]] = None


class ParsedTransaction(Struct):
    """Parsed transaction with message and signatures."""
    message: TransactionMessage
    signatures: list[str] = field(default_factory=list)


class TransactionsMeta(Struct):
    """Transaction metadata including balances and logs."""
    fee: int = 0
    err: Any = None
    preBalances: list[int] = field(default_factory=list)
    postBalances: list[int] = field(default_factory=list)
    preTokenBalances: list[TokenBalanceChange] | None = field(default_factory=list)
    postTokenBalances: list[TokenBalanceChange] | None = field(default_factory=list)
    innerInstructions: list[InnerInstruction] | None = field(default_factory=list)
    logMessages: list[str] | None = field(default_factory=list)
    rewards: list[Any] | None = None
    status: dict | None = None
    computeUnitsConsumed: Optional[int] = None
    costUnits: Optional[int] = None


class RawTransaction(Struct):
    """Transaction record as returned by `getTransaction` or pushed by `transactionSubscribe`."""
    transaction: ParsedTransaction
    slot: int = 0
    meta: TransactionsMeta | None = None
    blockTime: int | None = None
    version: Literal["legacy"] | int | None = None

    @property
    def account_keys(self) -> list[str]:
        """Gets the ordered account addresses."""
        return [acc.pubkey for acc in self.transaction.message.accountKeys]
