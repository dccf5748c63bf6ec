"""
aiohttp stream transport with ClientSession and the WebSocket mocked out.
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from ionic_solana_normalizer.errors import TransportError
from ionic_solana_normalizer.data_source.stream.aiohttp_transport import (
    AiohttpStreamConnection, AiohttpStreamTransport
)
from ionic_solana_normalizer.data_source.stream.stream_transport import StreamMessageType

URL = "wss://example.invalid"


def ws_message(msg_type, data=None, extra=None):
    return SimpleNamespace(type=msg_type, data=data, extra=extra)


def make_ws(*messages) -> MagicMock:
    ws = MagicMock()
    ws.closed = False
    ws.receive = AsyncMock(side_effect=list(messages))
    ws.pong = AsyncMock()
    ws.ping = AsyncMock()
    ws.send_str = AsyncMock()
    ws.close = AsyncMock()
    return ws


def make_session(ws_connect: AsyncMock) -> MagicMock:
    session = MagicMock()
    session.closed = False
    session.ws_connect = ws_connect
    session.close = AsyncMock()
    return session


def test_server_ping_is_answered_and_not_surfaced():
    ws = make_ws(
        ws_message(aiohttp.WSMsgType.PING, b"probe"),
        ws_message(aiohttp.WSMsgType.TEXT, '{"id": 420}'),
    )
    connection = AiohttpStreamConnection(make_session(AsyncMock()), ws)

    message = asyncio.run(connection.receive())

    ws.pong.assert_awaited_once_with(b"probe")
    assert message.type is StreamMessageType.TEXT
    assert message.data == '{"id": 420}'


@pytest.mark.parametrize("msg_type, data, expected_type, expected_data", [
    (aiohttp.WSMsgType.PONG, b"", StreamMessageType.PONG, None),
    (aiohttp.WSMsgType.BINARY, b'{"a": 1}', StreamMessageType.TEXT, '{"a": 1}'),
    (aiohttp.WSMsgType.CLOSE, 1000, StreamMessageType.CLOSED, "bye"),
    (aiohttp.WSMsgType.CLOSED, None, StreamMessageType.CLOSED, "bye"),
])
def test_message_types_are_mapped(msg_type, data, expected_type, expected_data):
    ws = make_ws(ws_message(msg_type, data, extra="bye"))
    connection = AiohttpStreamConnection(make_session(AsyncMock()), ws)

    message = asyncio.run(connection.receive())

    assert message.type is expected_type
    assert message.data == expected_data


def test_error_message_carries_ws_exception():
    ws = make_ws(ws_message(aiohttp.WSMsgType.ERROR))
    ws.exception = MagicMock(return_value=ConnectionResetError("reset by peer"))
    connection = AiohttpStreamConnection(make_session(AsyncMock()), ws)

    message = asyncio.run(connection.receive())

    assert message.type is StreamMessageType.ERROR
    assert message.data == "reset by peer"


def test_send_and_ping_go_to_the_socket():
    ws = make_ws()
    connection = AiohttpStreamConnection(make_session(AsyncMock()), ws)

    async def main():
        await connection.send("hello")
        await connection.ping()

    asyncio.run(main())

    ws.send_str.assert_awaited_once_with("hello")
    ws.ping.assert_awaited_once()


def test_connect_disables_autoping_and_close_releases_session():
    ws = make_ws()
    session = make_session(AsyncMock(return_value=ws))

    async def main():
        connection = await AiohttpStreamTransport().connect(URL)
        await connection.close()

    with patch.object(aiohttp, "ClientSession", MagicMock(return_value=session)):
        asyncio.run(main())

    assert session.ws_connect.call_args.args == (URL,)
    assert session.ws_connect.call_args.kwargs["autoping"] is False
    ws.close.assert_awaited_once()
    session.close.assert_awaited_once()


@pytest.mark.parametrize("error", [
    aiohttp.ClientConnectionError("refused"),
    OSError("unreachable"),
    asyncio.TimeoutError(),
])
def test_connect_failure_raises_transport_error_and_closes_session(error):
    session = make_session(AsyncMock(side_effect=error))

    with patch.object(aiohttp, "ClientSession", MagicMock(return_value=session)):
        with pytest.raises(TransportError):
            asyncio.run(AiohttpStreamTransport().connect(URL))

    session.close.assert_awaited_once()
