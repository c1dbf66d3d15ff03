"""
Wallet account discovery.
"""

from __future__ import annotations

from chaincore.models import Account
from chainwallet.bridge import BridgeError, WalletBridge
from loguru import logger

from registrar.errors import ExtensionUnavailable, NoAccountsFound


class AccountDirectory:
    def __init__(self, bridge: WalletBridge, app_name: str) -> None:
        self.bridge = bridge
        self.app_name = app_name

    async def discover(self) -> list[Account]:
        """
        Enable the wallet for this app and list its accounts.

        The list is returned as the wallet reported it, duplicates included.

        Raises:
            ExtensionUnavailable: If no wallet answered or none accepted the app
            NoAccountsFound: If the wallet exposes no accounts
        """
        logger.info(f"Enabling wallet bridge for '{self.app_name}'")
        try:
            extensions = await self.bridge.enable(self.app_name)
        except BridgeError as e:
            logger.warning(f"Wallet bridge unavailable: {e}")
            raise ExtensionUnavailable("Polkadot extension not found") from e
        if not extensions:
            raise ExtensionUnavailable("Polkadot extension not found")

        try:
            accounts = await self.bridge.list_accounts()
        except BridgeError as e:
            logger.warning(f"Failed to list wallet accounts: {e}")
            raise ExtensionUnavailable(f"Wallet did not return accounts: {e}") from e
        if not accounts:
            raise NoAccountsFound("No accounts found")

        logger.info(f"Found {len(accounts)} account(s) via {', '.join(extensions)}")
        return list(accounts)
