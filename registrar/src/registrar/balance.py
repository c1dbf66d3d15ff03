"""
Fee sufficiency check.

All comparisons happen in integer minor units; the display string is only
built for messages.
"""

from __future__ import annotations

from collections.abc import Callable

from chaincore.models import Account, WalletInfo, format_amount
from chainwallet.backends import LedgerBackend
from loguru import logger

from registrar.config import RegistrarConfig
from registrar.errors import InsufficientBalance, NotReady

HandleProvider = Callable[[], LedgerBackend | None]


class BalanceValidator:
    def __init__(self, config: RegistrarConfig, handle_provider: HandleProvider) -> None:
        self.config = config
        self.handle_provider = handle_provider

    async def check_and_select(self, account: Account) -> WalletInfo:
        """
        Read the account's free balance and compare it against the fee.

        Raises:
            NotReady: If there is no live connection
            InsufficientBalance: If the balance is below the fee
        """
        backend = self.handle_provider()
        if backend is None:
            raise NotReady("Network not ready. Please wait...")

        properties = await backend.chain_properties()
        balance = await backend.free_balance(account.address)
        required = self.config.fee_in_minor_units(properties.decimals)

        info = WalletInfo(
            address=account.address,
            name=account.display_name,
            balance=balance,
            decimals=properties.decimals,
            symbol=properties.symbol,
        )
        logger.info(
            f"Balance of {account.label}: {info.display_balance} {info.symbol} "
            f"(need {self.config.registration_fee})"
        )

        if balance < required:
            raise InsufficientBalance(
                required=required,
                available=balance,
                message=(
                    f"Insufficient balance. Need {self.config.registration_fee} "
                    f"{properties.symbol}, have "
                    f"{format_amount(balance, properties.decimals)} {properties.symbol}"
                ),
            )
        return info
