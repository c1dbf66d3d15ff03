"""
Registration state models.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from chaincore.models import Account, ChainProperties, WalletInfo

from registrar.errors import ClassifiedError


class ConnectionStatus(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass
class ConnectionState:
    """Owned and mutated only by the ConnectionManager."""

    status: ConnectionStatus = ConnectionStatus.DISCONNECTED
    attempt_count: int = 0
    last_message: str = ""


class TxPhase(int, Enum):
    """Commitment phases of a fee transfer. Ordered; only ever advances."""

    NONE = 0
    BROADCASTING = 1
    IN_BLOCK = 2
    FINALIZED = 3


@dataclass
class TransactionAttempt:
    account: Account
    phase: TxPhase = TxPhase.NONE
    tx_hash: str = ""
    block_hash: str | None = None
    error: ClassifiedError | None = None
    resolved: bool = False

    @property
    def live(self) -> bool:
        return not self.resolved

    @property
    def succeeded(self) -> bool:
        return self.resolved and self.error is None and self.phase == TxPhase.FINALIZED


class RegistrationStatus(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    AWAITING_SELECTION = "awaiting-selection"
    CHARGING = "charging"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class RegistrationSnapshot:
    """Read-only view of the registration flow for the UI layer."""

    status: RegistrationStatus = RegistrationStatus.IDLE
    message: str = ""
    accounts: tuple[Account, ...] = ()
    wallet_info: WalletInfo | None = None
    transaction_hash: str = ""
    in_progress: bool = False
    selected_account: Account | None = None
    chain_properties: ChainProperties = field(default_factory=ChainProperties)
    connected: bool = False
    error: ClassifiedError | None = None

    @property
    def can_submit(self) -> bool:
        return self.status == RegistrationStatus.SUCCESS and bool(self.transaction_hash)

    @property
    def can_retry(self) -> bool:
        return (
            self.status == RegistrationStatus.ERROR
            and self.selected_account is not None
            and self.connected
            and not self.in_progress
        )
