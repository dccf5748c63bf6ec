# Copyright (C) 2025, Ionic.

# This program is licensed under the Apache License 2.0.
# See LICENSE or go to <https://www.apache.org/licenses/LICENSE-2.0> for full license details.


"""Wire models for the `transactionSubscribe` stream and classification of inbound messages."""

from __future__ import annotations
from typing import Any, Literal, Optional, Union

import msgspec
from msgspec import Struct

from ionic_solana_normalizer.errors import MalformedMessage
from ionic_solana_normalizer.block.transactions.raw_transaction import (
    RawTransaction, ParsedTransaction, TransactionsMeta
)

SUBSCRIPTION_REQUEST_ID = 420


class TransactionFilter(Struct):
    accountInclude: list[str]


class SubscriptionOptions(Struct):
    vote: bool = False
    failed: bool = False
    commitment: str = "finalized"
    encoding: str = "jsonParsed"
    transactionDetails: str = "full"
    maxSupportedTransactionVersion: int = 0


class SubscriptionRequest(Struct):
    params: tuple[TransactionFilter, SubscriptionOptions]
    jsonrpc: str = "2.0"
    id: int = SUBSCRIPTION_REQUEST_ID
    method: str = "transactionSubscribe"


def build_subscription_request(address: str) -> str:
    """Encodes the subscription request for transactions touching `address`."""
    request = SubscriptionRequest(params=(TransactionFilter(accountInclude=[address]), SubscriptionOptions()))
    return msgspec.json.encode(request).decode("utf-8")


class NotifiedTransaction(Struct):
    transaction: ParsedTransaction
    meta: Optional[TransactionsMeta] = None
    version: Literal["legacy"] | int | None = None


class TransactionNotification(Struct):
    """`params.result` of a `transactionNotification`."""
    transaction: NotifiedTransaction
    signature: str
    slot: int

    def to_raw_transaction(self) -> RawTransaction:
        """Builds a raw record from the embedded transaction and the event slot."""
        return RawTransaction(
            transaction=self.transaction.transaction,
            meta=self.transaction.meta,
            slot=self.slot,
            version=self.transaction.version,
        )


class NotificationParams(Struct):
    subscription: Optional[int] = None
    result: Any = None
    error: Any = None


class Envelope(Struct):
    jsonrpc: Optional[str] = None
    id: Any = None
    method: Optional[str] = None
    params: Optional[NotificationParams] = None
    result: Any = None
    error: Any = None


class TransactionEvent(Struct, tag="transaction"):
    signature: str
    slot: int
    transaction: RawTransaction

    @property
    def is_failed(self) -> bool:
        return self.transaction.meta is not None and self.transaction.meta.err is not None


class ErrorEvent(Struct, tag="error"):
    error: Any


class UnknownEvent(Struct, tag="unknown"):
    payload: Any = None


StreamEvent = Union[TransactionEvent, ErrorEvent, UnknownEvent]

_envelope_decoder = msgspec.json.Decoder(Envelope)


def parse_stream_message(data: str | bytes) -> StreamEvent:
    """Parses one inbound payload and classifies it.

    Subscription acknowledgments and anything else that is neither a
    transaction nor an error come back as `UnknownEvent`.

    Raises:
        MalformedMessage: the payload is not a JSON object of the expected shape.
    """
    try:
        envelope = _envelope_decoder.decode(data)
    except msgspec.DecodeError as e:
        raise MalformedMessage(str(e)) from e

    if envelope.error is not None:
        return ErrorEvent(error=envelope.error)

    params = envelope.params
    if params is None:
        return UnknownEvent(payload=envelope.result)

    if params.error is not None:
        return ErrorEvent(error=params.error)

    if isinstance(params.result, dict) and "transaction" in params.result:
        try:
            notification = msgspec.convert(params.result, TransactionNotification)
        except msgspec.ValidationError as e:
            raise MalformedMessage(f"Invalid transaction notification: {e}") from e
        return TransactionEvent(
            signature=notification.signature,
            slot=notification.slot,
            transaction=notification.to_raw_transaction(),
        )

    return UnknownEvent(payload=params.result)
