"""
Substrate runtime and storage constants.

Storage prefixes are twox128(pallet) + twox128(item) and never change for a
given pallet/item name, so they are kept as literals instead of hashing at
runtime.
"""

from __future__ import annotations

# twox128("System") + twox128("Account")
SYSTEM_ACCOUNT_PREFIX = "26aa394eea5630e07c48ae0c9558cef7b99d880ec681799c0cf30e8886371da9"

# twox128("System") + twox128("Events")
SYSTEM_EVENTS_KEY = "0x26aa394eea5630e07c48ae0c9558cef780d41e5e16056765bc8461851072c9d7"

# Fallback chain properties when the node does not report them
DEFAULT_TOKEN_DECIMALS = 12
DEFAULT_TOKEN_SYMBOL = "TCESS"

# Public key length for sr25519/ed25519 account ids
ACCOUNT_ID_LENGTH = 32

# Balances calls, most preferred first. transfer_keep_alive refuses to reap
# the sender below the existential deposit.
TRANSFER_CALLS = ("transfer_keep_alive", "transfer", "transfer_allow_death")

# Extrinsic status strings reported by author_submitAndWatchExtrinsic
POOL_REJECTION_STATUSES = frozenset({"invalid", "dropped", "usurped", "finalityTimeout"})
