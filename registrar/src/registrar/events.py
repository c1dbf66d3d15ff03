"""
Typed events emitted by the registration components.

Components never touch the UI snapshot; they emit one of these and the
gate folds it into the snapshot with a pure transition function.
"""

from __future__ import annotations

from dataclasses import dataclass

from chaincore.models import Account, ChainProperties, WalletInfo

from registrar.errors import ClassifiedError
from registrar.models import TxPhase


@dataclass(frozen=True)
class ConnectionProgress:
    message: str


@dataclass(frozen=True)
class ConnectionReady:
    properties: ChainProperties


@dataclass(frozen=True)
class ConnectionLost:
    message: str


@dataclass(frozen=True)
class ConnectionFailedEvent:
    error: ClassifiedError


@dataclass(frozen=True)
class DiscoveryStarted:
    pass


@dataclass(frozen=True)
class AccountsDiscovered:
    accounts: tuple[Account, ...]


@dataclass(frozen=True)
class BalanceCheckStarted:
    account: Account


@dataclass(frozen=True)
class AccountValidated:
    wallet_info: WalletInfo


@dataclass(frozen=True)
class ChargeStarted:
    account: Account
    fee_display: str


@dataclass(frozen=True)
class PhaseChanged:
    phase: TxPhase
    tx_hash: str


@dataclass(frozen=True)
class ChargeSucceeded:
    tx_hash: str
    fee_display: str


@dataclass(frozen=True)
class OperationFailed:
    error: ClassifiedError
    # Balance-check failures drop the selection; charge failures keep it for retry()
    keep_selection: bool = True


@dataclass(frozen=True)
class TornDown:
    pass


GateEvent = (
    ConnectionProgress
    | ConnectionReady
    | ConnectionLost
    | ConnectionFailedEvent
    | DiscoveryStarted
    | AccountsDiscovered
    | BalanceCheckStarted
    | AccountValidated
    | ChargeStarted
    | PhaseChanged
    | ChargeSucceeded
    | OperationFailed
    | TornDown
)
