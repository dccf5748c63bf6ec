# Copyright (C) 2025, Ionic.

# This program is licensed under the Apache License 2.0.
# See LICENSE or go to <https://www.apache.org/licenses/LICENSE-2.0> for full license details.


"""Long-lived `transactionSubscribe` stream with heartbeats and automatic restarts.

Each connection attempt is one `SubscriptionSession` owning its connection and
timers. `LiveMonitor.run` creates a fresh session after every close and never
returns on its own. Events around a restart may be missed or delivered twice.
"""

from __future__ import annotations

import asyncio
import inspect
import os
from enum import Enum
from typing import Any, Callable, Optional

from dotenv import load_dotenv
from loguru import logger
from msgspec import Struct

from ionic_solana_normalizer.errors import (
    InvalidInputError, MalformedMessage, SubscriptionRejected, TransportError
)
from ionic_solana_normalizer.block.transactions.normalized_transaction import NormalizedTransaction
from ionic_solana_normalizer.data_source.stream.aiohttp_transport import AiohttpStreamTransport
from ionic_solana_normalizer.data_source.stream.model import (
    ErrorEvent, TransactionEvent, build_subscription_request, parse_stream_message
)
from ionic_solana_normalizer.data_source.stream.stream_transport import (
    BaseStreamConnection, BaseStreamTransport, StreamMessageType
)
from ionic_solana_normalizer.normalizer.transaction_normalizer import normalize
from ionic_solana_normalizer.utils.address import validate_address

load_dotenv()

HELIUS_WS_URL = "wss://atlas-mainnet.helius-rpc.com/?api-key={api_key}"

Observer = Callable[[NormalizedTransaction], Any]


class SessionState(Enum):
    CONNECTING = "connecting"
    SUBSCRIBING = "subscribing"
    ACTIVE = "active"
    AWAITING_HEARTBEAT_ACK = "awaiting_heartbeat_ack"
    CLOSED = "closed"
    RESTARTING = "restarting"


class LiveMonitorConfig(Struct, frozen=True):
    """Timer settings in seconds. The defaults restart forever with a fixed delay."""
    heartbeat_interval: float = 30.0
    heartbeat_timeout: float = 5.0
    restart_delay: float = 5.0
    backoff_factor: float = 1.0
    max_restart_delay: Optional[float] = None

    def restart_delay_for(self, consecutive_failures: int) -> float:
        """Delay before the next session, given how many sessions in a row never became active."""
        delay = self.restart_delay * self.backoff_factor ** max(consecutive_failures - 1, 0)
        if self.max_restart_delay is not None:
            delay = min(delay, self.max_restart_delay)
        return delay


class SubscriptionSession:
    """One connection, one subscription, one heartbeat timer."""

    def __init__(
            self,
            session_id: int,
            address: str,
            url: str,
            transport: BaseStreamTransport,
            observer: Observer,
            config: LiveMonitorConfig
    ):
        self.session_id = session_id
        self.address = address
        self.url = url
        self.transport = transport
        self.observer = observer
        self.config = config

        self.state = SessionState.CONNECTING
        self.connection: Optional[BaseStreamConnection] = None
        self.close_reason = ""
        self.became_active = False
        self.pings_sent = 0
        self.delivered = 0
        self._pong_received: Optional[asyncio.Event] = None
        self._observer_tasks: set[asyncio.Task] = set()

    def transition(self, state: SessionState) -> None:
        logger.debug(f"Session {self.session_id}: {self.state.name} -> {state.name}")
        self.state = state
        if state is SessionState.ACTIVE:
            self.became_active = True

    async def run(self) -> None:
        """Runs the session until the connection is gone. Transport failures are logged, not raised."""
        try:
            self.connection = await self.transport.connect(self.url)
        except Exception as e:
            logger.error(f"Session {self.session_id}: connection failed: {e}")
            self.close_reason = "connect failed"
            self.transition(SessionState.CLOSED)
            return

        logger.info("WebSocket is open")
        self.transition(SessionState.SUBSCRIBING)

        tasks: list[asyncio.Task] = []
        try:
            await self.connection.send(build_subscription_request(self.address))
            tasks = [
                asyncio.create_task(self._receive_loop()),
                asyncio.create_task(self._heartbeat()),
            ]
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                task.result()
        except Exception as e:
            logger.warning(f"Session {self.session_id}: transport error: {e}")
            self.close_reason = self.close_reason or "transport error"
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            await self._drain_observers()
            await self._close_connection()
            self.transition(SessionState.CLOSED)

    async def _close_connection(self) -> None:
        try:
            await self.connection.close()
        except Exception as e:
            logger.debug(f"Session {self.session_id}: error while closing connection: {e}")

    async def _heartbeat(self) -> None:
        """Pings on a fixed cadence from the moment the connection opened.

        Returns, ending the session, when a pong is late.
        """
        loop = asyncio.get_running_loop()
        next_ping = loop.time() + self.config.heartbeat_interval
        while True:
            await asyncio.sleep(max(next_ping - loop.time(), 0))
            next_ping += self.config.heartbeat_interval

            self._pong_received = asyncio.Event()
            await self.connection.ping()
            self.pings_sent += 1
            self.transition(SessionState.AWAITING_HEARTBEAT_ACK)

            try:
                await asyncio.wait_for(self._pong_received.wait(), timeout=self.config.heartbeat_timeout)
            except asyncio.TimeoutError:
                logger.warning("Pong not received in time, closing connection")
                self.close_reason = "heartbeat timeout"
                return

            self.transition(SessionState.ACTIVE)

    async def _receive_loop(self) -> None:
        while True:
            message = await self.connection.receive()

            match message.type:
                case StreamMessageType.PONG:
                    if self._pong_received is not None:
                        self._pong_received.set()
                case StreamMessageType.TEXT:
                    await self._handle_text(message.data or "")
                case StreamMessageType.ERROR:
                    self.close_reason = "transport error"
                    raise TransportError(f"WebSocket error: {message.data}")
                case StreamMessageType.CLOSED:
                    logger.info("WebSocket is closed")
                    self.close_reason = "closed by peer"
                    return

    async def _handle_text(self, text: str) -> None:
        """Processes one payload. Subscription errors end the session."""
        try:
            event = parse_stream_message(text)
        except MalformedMessage as e:
            logger.warning(f"Failed to parse message: {e}")
            return

        match event:
            case ErrorEvent():
                self.close_reason = "subscription error"
                raise SubscriptionRejected(f"Subscription error: {event.error}")
            case TransactionEvent():
                self._mark_active()
                await self._dispatch(event)
            case _:
                self._mark_active()
                logger.info(f"Received message: {event.payload}")

    def _mark_active(self) -> None:
        if self.state is SessionState.SUBSCRIBING:
            self.transition(SessionState.ACTIVE)

    async def _dispatch(self, event: TransactionEvent) -> None:
        if event.is_failed:
            logger.debug(f"Discarding failed transaction {event.signature}")
            return

        try:
            transaction = normalize(event.transaction, event.signature)
        except InvalidInputError as e:
            logger.warning(f"Skipping transaction {event.signature}: {e}")
            return

        try:
            result = self.observer(transaction)
        except Exception as e:
            logger.exception(f"Observer failed on {event.signature}: {e}")
            return

        if not inspect.isawaitable(result):
            self.delivered += 1
            return

        # Async observers run beside the receive loop so pongs keep flowing
        task = asyncio.ensure_future(result)
        self._observer_tasks.add(task)
        task.add_done_callback(lambda done: self._observer_done(done, event.signature))

    def _observer_done(self, task: asyncio.Task, signature: str) -> None:
        self._observer_tasks.discard(task)
        if task.cancelled():
            logger.warning(f"Observer cancelled on {signature}")
            return
        error = task.exception()
        if error is not None:
            logger.opt(exception=error).error(f"Observer failed on {signature}: {error}")
            return
        self.delivered += 1

    async def _drain_observers(self) -> None:
        """Gives pending observers one heartbeat timeout to finish, then cancels them."""
        if not self._observer_tasks:
            return
        pending = set(self._observer_tasks)
        _, still_running = await asyncio.wait(pending, timeout=self.config.heartbeat_timeout)
        for task in still_running:
            task.cancel()
        await asyncio.gather(*still_running, return_exceptions=True)


class LiveMonitor:
    """Streams normalized transactions touching one address to an observer, forever."""

    def __init__(
            self,
            address: str,
            observer: Observer,
            transport: Optional[BaseStreamTransport] = None,
            ws_url: Optional[str] = None,
            config: LiveMonitorConfig = LiveMonitorConfig()
    ):
        self.address = validate_address(address)
        self.observer = observer
        self.transport = transport or AiohttpStreamTransport()
        self.config = config
        self.ws_url = ws_url or os.getenv("SOLANA_WS_URL")
        if not self.ws_url and os.getenv("HELIUS_API_KEY"):
            self.ws_url = HELIUS_WS_URL.format(api_key=os.getenv("HELIUS_API_KEY"))
        if not self.ws_url:
            raise ValueError("WebSocket URL must be provided either as parameter, SOLANA_WS_URL or HELIUS_API_KEY")

        self.sessions_started = 0
        self.current_session: Optional[SubscriptionSession] = None

    @property
    def state(self) -> Optional[SessionState]:
        return self.current_session.state if self.current_session else None

    def _new_session(self) -> SubscriptionSession:
        self.sessions_started += 1
        return SubscriptionSession(
            session_id=self.sessions_started,
            address=self.address,
            url=self.ws_url,
            transport=self.transport,
            observer=self.observer,
            config=self.config,
        )

    async def run(self) -> None:
        """Runs sessions back to back. Only returns through task cancellation."""
        consecutive_failures = 0
        while True:
            logger.info("Initializing WebSocket...")
            session = self._new_session()
            self.current_session = session
            await session.run()

            consecutive_failures = 0 if session.became_active else consecutive_failures + 1
            delay = self.config.restart_delay_for(consecutive_failures)
            session.transition(SessionState.RESTARTING)
            logger.warning(
                f"Session {session.session_id} closed ({session.close_reason}), restarting in {delay:.1f}s"
            )
            await asyncio.sleep(delay)
