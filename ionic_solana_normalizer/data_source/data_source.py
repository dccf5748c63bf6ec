# Copyright (C) 2025, Ionic.

# This program is licensed under the Apache License 2.0.
# See LICENSE or go to <https://www.apache.org/licenses/LICENSE-2.0> for full license details.

"""Abstract base class for paged signature listing and transaction resolution."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from ionic_solana_normalizer.block.transactions.raw_transaction import RawTransaction
from ionic_solana_normalizer.data_source.rpc.model import SignatureInfo


class BaseDataSource(ABC):
    """Source of signature pages and transaction bodies for the historical fetcher."""

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        """Initializes the data source with optional configuration."""
        self.config = config or {}
        self._connected = False

    @abstractmethod
    async def connect(self) -> None:
        """Opens the underlying client. Must be called before any request."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Releases the underlying client."""
        pass

    @abstractmethod
    async def get_signatures_for_address(
            self,
            address: str,
            before: Optional[str] = None,
            limit: int = 1000
    ) -> List[SignatureInfo]:
        """Lists signatures involving `address`, newest first, older than `before`."""
        pass

    @abstractmethod
    async def get_parsed_transactions(
            self,
            signatures: List[str],
            max_supported_transaction_version: int = 0
    ) -> List[Optional[RawTransaction]]:
        """Resolves full transaction bodies in one batch, `None` for unresolved signatures.

        The result is aligned with `signatures`.
        """
        pass

    @property
    def is_connected(self) -> bool:
        """Whether `connect` was called and not yet undone."""
        return self._connected

