"""
Builders for raw transaction payloads and in-memory fakes for the data source
and the stream transport.
"""

from __future__ import annotations

import asyncio
from typing import Any

import msgspec

from ionic_solana_normalizer.block.transactions.raw_transaction import RawTransaction
from ionic_solana_normalizer.data_source.data_source import BaseDataSource
from ionic_solana_normalizer.data_source.rpc.model import SignatureInfo
from ionic_solana_normalizer.data_source.stream.stream_transport import (
    BaseStreamConnection, BaseStreamTransport, StreamMessage, StreamMessageType
)

WATCHED = "7rtiKSUDLBm59b1SBmD9oajcP8xE64vAGSMbAN5CXy1q"
OTHER = "DxEBUuzDXnQjKmvXHMgox8gr9qL7duEDtRyeq38kd4Gv"
SYSTEM_PROGRAM = "11111111111111111111111111111111"
TOKEN_PROGRAM = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
USDC = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"


def token_balance(account_index: int, mint: str, ui_amount: float, decimals: int = 6, owner: str | None = None) -> dict:
    raw = int(round(ui_amount * 10 ** decimals))
    return {
        "accountIndex": account_index,
        "mint": mint,
        "owner": owner,
        "programId": TOKEN_PROGRAM,
        "uiTokenAmount": {
            "amount": str(raw),
            "decimals": decimals,
            "uiAmount": float(ui_amount),
            "uiAmountString": str(ui_amount),
        },
    }


def transaction_payload(
        account_keys: list[str],
        pre_balances: list[int] | None = None,
        post_balances: list[int] | None = None,
        pre_token_balances: list[dict] | None = None,
        post_token_balances: list[dict] | None = None,
        instructions: list[dict] | None = None,
        inner_instructions: list[dict] | None = None,
        err: Any = None,
        fee: int = 5000,
        signature: str = "sig1",
        with_meta: bool = True,
) -> dict:
    """Inner `{transaction, meta}` part shared by RPC results and stream notifications."""
    payload: dict = {
        "transaction": {
            "signatures": [signature],
            "message": {
                "accountKeys": [
                    {"pubkey": key, "signer": i == 0, "writable": True, "source": "transaction"}
                    for i, key in enumerate(account_keys)
                ],
                "instructions": instructions or [],
                "recentBlockhash": "GHtXQBsoZHVnNFa9YevAzFr17DJjgHXk3ycTKD5xD3Zi",
            },
        },
        "version": 0,
    }
    if with_meta:
        payload["meta"] = {
            "err": err,
            "fee": fee,
            "preBalances": pre_balances or [],
            "postBalances": post_balances or [],
            "preTokenBalances": pre_token_balances or [],
            "postTokenBalances": post_token_balances or [],
            "innerInstructions": inner_instructions or [],
            "logMessages": [],
            "status": {"Ok": None} if err is None else {"Err": err},
        }
    return payload


def make_raw(slot: int = 1, block_time: int | None = None, **kwargs) -> RawTransaction:
    payload = transaction_payload(**kwargs)
    payload["slot"] = slot
    payload["blockTime"] = block_time
    return msgspec.convert(payload, RawTransaction)


class FakeDataSource(BaseDataSource):
    """Serves signature pages from a newest-first list and bodies from a dict."""

    def __init__(self, signatures: list[SignatureInfo], bodies: dict[str, RawTransaction | None] | None = None):
        super().__init__()
        self.signatures = signatures
        self.bodies = bodies or {}
        self.list_calls: list[tuple[str | None, int]] = []
        self.resolve_calls: list[list[str]] = []
        self.list_error: Exception | None = None
        self.resolve_error: Exception | None = None

    async def connect(self) -> None:
        self._connected = True

    async def disconnect(self) -> None:
        self._connected = False

    async def get_signatures_for_address(self, address, before=None, limit=1000):
        self.list_calls.append((before, limit))
        if self.list_error:
            raise self.list_error
        start = 0
        if before is not None:
            start = [info.signature for info in self.signatures].index(before) + 1
        return self.signatures[start:start + limit]

    async def get_parsed_transactions(self, signatures, max_supported_transaction_version=0):
        self.resolve_calls.append(list(signatures))
        if self.resolve_error:
            raise self.resolve_error
        return [self.bodies.get(signature) for signature in signatures]


def history(block_times: list[int | None]) -> tuple[list[SignatureInfo], dict[str, RawTransaction]]:
    """Newest-first signature list with one resolvable body per entry."""
    signatures = []
    bodies = {}
    for i, block_time in enumerate(block_times):
        signature = f"sig{i}"
        signatures.append(SignatureInfo(signature=signature, slot=1000 - i, blockTime=block_time))
        bodies[signature] = make_raw(
            slot=1000 - i,
            block_time=block_time,
            account_keys=[WATCHED, OTHER],
            pre_balances=[100, 50],
            post_balances=[80, 70],
            signature=signature,
        )
    return signatures, bodies


class FakeConnection(BaseStreamConnection):
    def __init__(
            self,
            texts: list[str] | None = None,
            answer_pings: bool = True,
            close_after: bool = False,
            pong_delay: float = 0.0,
    ):
        self.inbox: asyncio.Queue[StreamMessage] = asyncio.Queue()
        for text in texts or []:
            self.inbox.put_nowait(StreamMessage(type=StreamMessageType.TEXT, data=text))
        if close_after:
            self.inbox.put_nowait(StreamMessage(type=StreamMessageType.CLOSED))
        self.answer_pings = answer_pings
        self.pong_delay = pong_delay
        self.sent: list[str] = []
        self.pings = 0
        self.closed = False

    async def send(self, text: str) -> None:
        self.sent.append(text)

    async def ping(self) -> None:
        self.pings += 1
        if not self.answer_pings:
            return
        pong = StreamMessage(type=StreamMessageType.PONG)
        if self.pong_delay:
            asyncio.get_running_loop().call_later(self.pong_delay, self.inbox.put_nowait, pong)
        else:
            self.inbox.put_nowait(pong)

    async def receive(self) -> StreamMessage:
        return await self.inbox.get()

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.inbox.put_nowait(StreamMessage(type=StreamMessageType.CLOSED))


class FakeTransport(BaseStreamTransport):
    """Hands out connections built by `factory`, recording connect times."""

    def __init__(self, factory):
        self.factory = factory
        self.connections: list[FakeConnection] = []
        self.connect_times: list[float] = []

    async def connect(self, url: str) -> FakeConnection:
        self.connect_times.append(asyncio.get_running_loop().time())
        connection = self.factory(len(self.connections))
        if isinstance(connection, Exception):
            raise connection
        self.connections.append(connection)
        return connection


def notification(signature: str = "liveSig", slot: int = 224341380, err: Any = None) -> str:
    """`transactionNotification` frame for a WATCHED -> OTHER lamport transfer."""
    payload = transaction_payload(
        account_keys=[WATCHED, OTHER],
        pre_balances=[100, 50],
        post_balances=[80, 70],
        err=err,
        signature=signature,
    )
    return msgspec.json.encode({
        "jsonrpc": "2.0",
        "method": "transactionNotification",
        "params": {
            "subscription": 4743323479349712,
            "result": {"transaction": payload, "signature": signature, "slot": slot},
        },
    }).decode("utf-8")
