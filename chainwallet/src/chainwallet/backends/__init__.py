"""
Ledger backend implementations.

Available backends:
- SubstrateBackend: Substrate node over WebSocket JSON-RPC (CESS, Polkadot, ...)
"""

from chainwallet.backends.base import LedgerBackend, Subscription
from chainwallet.backends.substrate import ExtrinsicWatch, SubstrateBackend

__all__ = [
    "ExtrinsicWatch",
    "LedgerBackend",
    "SubstrateBackend",
    "Subscription",
]
