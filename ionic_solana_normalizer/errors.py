# Copyright (C) 2025, Ionic.

# This program is licensed under the Apache License 2.0.
# See LICENSE or go to <https://www.apache.org/licenses/LICENSE-2.0> for full license details.

"""Exception hierarchy shared by the normalizer and both acquisition pipelines."""

from typing import Any


class NormalizerError(Exception):
    """Base class for all errors raised by this package."""


class InvalidInputError(NormalizerError):
    """Raw transaction is malformed or incomplete and cannot be normalized."""


class FetchError(NormalizerError):
    """Transport failure during a historical fetch. The cause is chained."""


class RPCResponseError(NormalizerError):
    """JSON-RPC endpoint answered with an error object."""

    def __init__(self, method: str, error: Any):
        super().__init__(f"{method} failed: {error}")
        self.method = method
        self.error = error


class TransportError(NormalizerError):
    """Live stream transport failed. Recovered by restarting the session."""


class SubscriptionRejected(TransportError):
    """Upstream rejected the subscription or reported a subscription error."""


class MalformedMessage(NormalizerError):
    """Inbound stream payload could not be parsed."""
