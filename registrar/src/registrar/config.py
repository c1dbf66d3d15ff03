"""
Configuration for the Block+ registration flow.
"""

from __future__ import annotations

from decimal import Decimal

from chaincore.codec import AddressError, ss58_decode
from chaincore.constants import DEFAULT_TOKEN_DECIMALS, DEFAULT_TOKEN_SYMBOL
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

CESS_TESTNET_RPC = "wss://testnet-rpc.cess.network"
SERVICE_WALLET = "5EU1Jt7XHKgZhHo3HJji63PQi54t8wmZ8wQQF3Dnn1WBFoyy"


class RegistrarConfig(BaseModel):
    """Configuration for one registration session."""

    # Ledger node
    node_url: str = CESS_TESTNET_RPC
    rpc_timeout: float = Field(default=30.0, gt=0)

    # Fee payment
    service_address: str = SERVICE_WALLET
    registration_fee: Decimal = Field(
        default=Decimal("3"), gt=0, description="Fee in display units of the native token"
    )

    # Connection resilience
    reconnect_delay: float = Field(default=3.0, ge=0, description="Seconds between attempts")
    max_connect_attempts: int = Field(default=3, ge=1)

    # Fallbacks when the node does not report token properties
    default_decimals: int = Field(default=DEFAULT_TOKEN_DECIMALS, ge=0)
    default_symbol: str = DEFAULT_TOKEN_SYMBOL

    # Collaborators
    app_name: str = "Block+ Registration"
    wallet_url: str = "http://127.0.0.1:8765"
    api_url: str = "http://localhost:5000"

    @field_validator("service_address")
    @classmethod
    def validate_service_address(cls, v: str) -> str:
        try:
            ss58_decode(v)
        except AddressError as e:
            raise ValueError(f"Invalid service address: {e}") from e
        return v

    def fee_in_minor_units(self, decimals: int) -> int:
        """
        Registration fee as an integer amount of minor units.

        Raises:
            ValueError: If the fee has more precision than the chain supports
        """
        scaled = self.registration_fee.scaleb(decimals)
        if scaled != scaled.to_integral_value():
            raise ValueError(
                f"Fee {self.registration_fee} not representable with {decimals} decimals"
            )
        return int(scaled)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    node_url: str = CESS_TESTNET_RPC
    rpc_timeout: float = 30.0
    service_address: str = SERVICE_WALLET
    registration_fee: Decimal = Decimal("3")
    reconnect_delay: float = 3.0
    max_connect_attempts: int = 3
    default_decimals: int = DEFAULT_TOKEN_DECIMALS
    default_symbol: str = DEFAULT_TOKEN_SYMBOL
    app_name: str = "Block+ Registration"
    wallet_url: str = "http://127.0.0.1:8765"
    api_url: str = "http://localhost:5000"

    log_level: str = "INFO"

    def to_config(self) -> RegistrarConfig:
        return RegistrarConfig(
            node_url=self.node_url,
            rpc_timeout=self.rpc_timeout,
            service_address=self.service_address,
            registration_fee=self.registration_fee,
            reconnect_delay=self.reconnect_delay,
            max_connect_attempts=self.max_connect_attempts,
            default_decimals=self.default_decimals,
            default_symbol=self.default_symbol,
            app_name=self.app_name,
            wallet_url=self.wallet_url,
            api_url=self.api_url,
        )


def get_settings() -> Settings:
    return Settings()
