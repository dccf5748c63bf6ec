# Copyright (C) 2025, Ionic.

# This program is licensed under the Apache License 2.0.
# See LICENSE or go to <https://www.apache.org/licenses/LICENSE-2.0> for full license details.


import aiohttp
import msgspec
import os
from typing import Any, Dict, List, Optional
from loguru import logger
from dotenv import load_dotenv

from ionic_solana_normalizer.errors import RPCResponseError
from ionic_solana_normalizer.data_source.data_source import BaseDataSource
from ionic_solana_normalizer.data_source.rpc.model import (
    RPCRequest, SignatureInfo, SignaturesResponse, TransactionResponse
)
from ionic_solana_normalizer.block.transactions.raw_transaction import RawTransaction

load_dotenv()


class SolanaRPCDataSource(BaseDataSource):
    """Solana JSON-RPC data source implementation."""

    def __init__(self, rpc_url: Optional[str] = None, config: Optional[Dict[str, Any]] = None):
        """Initializes the Solana RPC data source."""
        super().__init__(config)
        self.rpc_url = rpc_url or os.getenv("SOLANA_RPC_URL")
        if not self.rpc_url:
            raise ValueError("RPC URL must be provided either as parameter or SOLANA_RPC_URL environment variable")
        self.commitment = self.config.get("commitment", "confirmed")
        self.session: Optional[aiohttp.ClientSession] = None
        self.encoder = msgspec.json.Encoder()
        self.signatures_decoder = msgspec.json.Decoder(SignaturesResponse)
        self.transactions_decoder = msgspec.json.Decoder(List[TransactionResponse])

    async def connect(self) -> None:
        """Establishes connection to the Solana RPC endpoint."""
        if not self.session:
            self.session = aiohttp.ClientSession()
        self._connected = True
        logger.info(f"Connected to Solana RPC at {self.rpc_url}")

    async def disconnect(self) -> None:
        """Closes connection to the Solana RPC endpoint."""
        if self.session:
            await self.session.close()
            self.session = None
        self._connected = False

    async def _post(self, payload: Any) -> bytes:
        """Posts an encoded JSON-RPC payload (single request or batch)."""
        if not self.session:
            raise RuntimeError("RPC client not connected")

        payload_bytes = self.encoder.encode(payload)
        headers = {"Content-Type": "application/json"}
        async with self.session.post(self.rpc_url, data=payload_bytes, headers=headers) as response:
            response.raise_for_status()
            return await response.read()

    async def get_signatures_for_address(
            self,
            address: str,
            before: Optional[str] = None,
            limit: int = 1000
    ) -> List[SignatureInfo]:
        """Lists signatures involving `address`, newest first."""
        options: Dict[str, Any] = {"limit": limit, "commitment": self.commitment}
        if before:
            options["before"] = before

        result = await self._post(RPCRequest(method="getSignaturesForAddress", params=[address, options]))
        rpc_response = self.signatures_decoder.decode(result)
        if rpc_response.is_error:
            raise RPCResponseError("getSignaturesForAddress", rpc_response.error)

        return rpc_response.result or []

    async def get_parsed_transactions(
            self,
            signatures: List[str],
            max_supported_transaction_version: int = 0
    ) -> List[Optional[RawTransaction]]:
        """Resolves transactions with a single batched `getTransaction` request."""
        if not signatures:
            return []

        batch = [
            RPCRequest(
                method="getTransaction",
                params=[signature, {
                    "encoding": "jsonParsed",
                    "commitment": self.commitment,
                    "maxSupportedTransactionVersion": max_supported_transaction_version,
                }],
                id=i,
            )
            for i, signature in enumerate(signatures)
        ]
        logger.debug(f"Resolving {len(signatures)} transactions")

        result = await self._post(batch)
        responses = self.transactions_decoder.decode(result)

        transactions: List[Optional[RawTransaction]] = [None] * len(signatures)
        for rpc_response in responses:
            if rpc_response.is_error:
                raise RPCResponseError("getTransaction", rpc_response.error)
            if not 0 <= rpc_response.id < len(signatures) or rpc_response.result is None:
                continue
            try:
                transactions[rpc_response.id] = msgspec.convert(rpc_response.result, RawTransaction)
            except msgspec.ValidationError as e:
                logger.warning(f"Skipping malformed transaction {signatures[rpc_response.id]}: {e}")

        return transactions

