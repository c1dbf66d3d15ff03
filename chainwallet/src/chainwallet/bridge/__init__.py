"""
Wallet bridges: account discovery and transaction signing.
"""

from chainwallet.bridge.base import BridgeError, Signer, SignerRejected, WalletBridge
from chainwallet.bridge.remote import RemoteSigner, RemoteWalletBridge

__all__ = [
    "BridgeError",
    "RemoteSigner",
    "RemoteWalletBridge",
    "Signer",
    "SignerRejected",
    "WalletBridge",
]
