# Copyright (C) 2025, Ionic.

# This program is licensed under the Apache License 2.0.
# See LICENSE or go to <https://www.apache.org/licenses/LICENSE-2.0> for full license details.


"""List of known solana mints"""

KNOWN_MINTS = {
    "USDC": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
    "SOL": "So11111111111111111111111111111111111111112",
    "USDT": "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB",
}


def get_mint_label(pubkey: str) -> str | None:
    for name, key in KNOWN_MINTS.items():
        if key == pubkey:
            return name
    return None


def obfuscate_pubkey(address: str) -> str:
    """Shortens an address for display, using the mint label when known."""
    label = get_mint_label(address)
    if label:
        return label
    if not address:
        return ""
    return f"{address[:4]}...{address[-4:]}"
