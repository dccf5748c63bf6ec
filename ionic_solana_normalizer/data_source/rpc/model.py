# Copyright (C) 2025, Ionic.

# This program is licensed under the Apache License 2.0.
# See LICENSE or go to <https://www.apache.org/licenses/LICENSE-2.0> for full license details.


"""Request and response models for RPC data source."""

from typing import Generic, TypeVar, Any, List, Optional
from msgspec import Struct

T = TypeVar('T')


class RPCRequest(Struct):
    """JSON-RPC request envelope."""
    method: str
    params: List[Any]
    jsonrpc: str = "2.0"
    id: int = 1


class RPCError(Struct):
    """RPC error structure."""
    code: int
    message: str
    data: Any = None


class Response(Struct, Generic[T]):
    """Generic RPC response wrapper."""
    jsonrpc: str
    id: int
    result: Optional[T] = None
    error: Optional[RPCError] = None

    @property
    def is_error(self) -> bool:
        """Check if response has error."""
        return self.error is not None


class SignatureInfo(Struct):
    """Entry returned by `getSignaturesForAddress`."""
    signature: str
    slot: int = 0
    blockTime: Optional[int] = None
    err: Any = None
    memo: Optional[str] = None
    confirmationStatus: Optional[str] = None


class SignaturesResponse(Response[List[SignatureInfo]]):
    """Typed response for signature listing."""
    pass


class TransactionResponse(Response[Any]):
    """Response for a single resolved transaction.

    The body is validated per record so that one malformed record does not fail the whole batch.
    """
    pass
