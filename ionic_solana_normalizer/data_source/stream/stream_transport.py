# Copyright (C) 2025, Ionic.

# This program is licensed under the Apache License 2.0.
# See LICENSE or go to <https://www.apache.org/licenses/LICENSE-2.0> for full license details.

"""Abstract duplex stream used by the live monitor."""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional

from msgspec import Struct


class StreamMessageType(Enum):
    TEXT = "text"
    PONG = "pong"
    CLOSED = "closed"
    ERROR = "error"


class StreamMessage(Struct):
    """Frame delivered by a stream connection."""
    type: StreamMessageType
    data: Optional[str] = None


class BaseStreamConnection(ABC):
    """One open duplex connection. Owned by exactly one subscription session."""

    @abstractmethod
    async def send(self, text: str) -> None:
        """Sends a text frame."""
        pass

    @abstractmethod
    async def ping(self) -> None:
        """Sends a heartbeat probe. The acknowledgment arrives as a PONG message."""
        pass

    @abstractmethod
    async def receive(self) -> StreamMessage:
        """Waits for the next frame. Returns CLOSED or ERROR once the connection is gone."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Tears the connection down. Safe to call more than once."""
        pass


class BaseStreamTransport(ABC):
    """Factory for stream connections."""

    @abstractmethod
    async def connect(self, url: str) -> BaseStreamConnection:
        """Opens a new connection to `url`."""
        pass
