# Copyright (C) 2025, Ionic.

# This program is licensed under the Apache License 2.0.
# See LICENSE or go to <https://www.apache.org/licenses/LICENSE-2.0> for full license details.


"""Validation of watched addresses."""

from solders.pubkey import Pubkey

from ionic_solana_normalizer.errors import InvalidInputError


def validate_address(address: str) -> str:
    """Returns the canonical base58 form of `address`, raising InvalidInputError if it is not a public key."""
    try:
        return str(Pubkey.from_string(address))
    except ValueError as e:
        raise InvalidInputError(f"Invalid address {address!r}: {e}") from e
