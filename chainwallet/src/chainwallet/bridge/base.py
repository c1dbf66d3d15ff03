"""
Wallet bridge interface.

A wallet bridge is whatever holds the user's keys (browser extension, local
wallet daemon, hardware signer). The registration flow never sees keys; it
only enumerates accounts and asks for signed extrinsics.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from chaincore.models import Account, SigningContext, TransferInstruction


class BridgeError(Exception):
    """The bridge is missing, unreachable or answered nonsense."""


class SignerRejected(BridgeError):
    """The user declined the signing request in the wallet."""


class Signer(ABC):
    address: str

    @abstractmethod
    async def sign(self, instruction: TransferInstruction, context: SigningContext) -> str:
        """
        Authorise an instruction.

        Returns:
            The signed extrinsic, hex encoded with 0x prefix

        Raises:
            SignerRejected: If the user declined
            BridgeError: If the wallet could not be reached
        """


class WalletBridge(ABC):
    @abstractmethod
    async def enable(self, app_name: str) -> list[str]:
        """Ask the wallet to authorise this app; returns the names of wallets that accepted"""

    @abstractmethod
    async def list_accounts(self) -> list[Account]:
        """Accounts exposed to this app, in wallet order"""

    @abstractmethod
    async def get_signer(self, address: str) -> Signer | None:
        """Signer for an account, or None if the wallet cannot sign for it"""

    async def close(self) -> None:
        pass
