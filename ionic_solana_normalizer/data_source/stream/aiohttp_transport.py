# Copyright (C) 2025, Ionic.

# This program is licensed under the Apache License 2.0.
# See LICENSE or go to <https://www.apache.org/licenses/LICENSE-2.0> for full license details.

"""aiohttp WebSocket implementation of the stream transport."""

import asyncio
from typing import Optional

import aiohttp
from loguru import logger

from ionic_solana_normalizer.errors import TransportError
from ionic_solana_normalizer.data_source.stream.stream_transport import (
    BaseStreamConnection, BaseStreamTransport, StreamMessage, StreamMessageType
)


class AiohttpStreamConnection(BaseStreamConnection):
    """Wraps an aiohttp client WebSocket with manual ping/pong handling."""

    def __init__(self, session: aiohttp.ClientSession, ws: aiohttp.ClientWebSocketResponse):
        self.session = session
        self.ws = ws

    async def send(self, text: str) -> None:
        await self.ws.send_str(text)

    async def ping(self) -> None:
        await self.ws.ping()

    async def receive(self) -> StreamMessage:
        while True:
            msg = await self.ws.receive()

            match msg.type:
                case aiohttp.WSMsgType.TEXT:
                    return StreamMessage(type=StreamMessageType.TEXT, data=msg.data)
                case aiohttp.WSMsgType.BINARY:
                    return StreamMessage(type=StreamMessageType.TEXT, data=msg.data.decode("utf-8", errors="replace"))
                case aiohttp.WSMsgType.PING:
                    # autoping is off, so answer server probes ourselves
                    await self.ws.pong(msg.data)
                case aiohttp.WSMsgType.PONG:
                    return StreamMessage(type=StreamMessageType.PONG)
                case aiohttp.WSMsgType.ERROR:
                    return StreamMessage(type=StreamMessageType.ERROR, data=str(self.ws.exception()))
                case _:
                    return StreamMessage(type=StreamMessageType.CLOSED, data=str(msg.extra or ""))

    async def close(self) -> None:
        try:
            if not self.ws.closed:
                await self.ws.close()
        finally:
            if not self.session.closed:
                await self.session.close()


class AiohttpStreamTransport(BaseStreamTransport):
    """Opens WebSocket connections with a dedicated client session per connection."""

    def __init__(self, timeout: Optional[float] = 10.0):
        self.timeout = timeout

    async def connect(self, url: str) -> AiohttpStreamConnection:
        session = aiohttp.ClientSession()
        try:
            ws = await session.ws_connect(
                url,
                autoping=False,
                timeout=aiohttp.ClientWSTimeout(ws_receive=None, ws_close=self.timeout),
            )
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
            await session.close()
            raise TransportError(f"Failed to connect to stream: {e}") from e

        logger.debug("Stream connection opened")
        return AiohttpStreamConnection(session, ws)
