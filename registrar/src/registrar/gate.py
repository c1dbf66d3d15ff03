"""
Registration gate: the state machine behind the registration form.

Components report what happened as typed events; `transition` folds each
event into a new immutable snapshot. The form may only be submitted while
the snapshot says `success` and carries a transaction hash.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import replace

from chaincore.models import Account, ChainProperties
from chainwallet.bridge import WalletBridge
from loguru import logger
from pydantic import BaseModel, Field, field_validator

from registrar.accounts import AccountDirectory
from registrar.api import RegistrationClient, RegistrationResult
from registrar.balance import BalanceValidator
from registrar.charge import FeeTransactionOrchestrator
from registrar.classifier import classify_exception
from registrar.config import RegistrarConfig
from registrar.connection import BackendFactory, ConnectionManager
from registrar.errors import ConnectionFailed, RegistrationError
from registrar.events import (
    AccountsDiscovered,
    AccountValidated,
    BalanceCheckStarted,
    ChargeStarted,
    ChargeSucceeded,
    ConnectionFailedEvent,
    ConnectionLost,
    ConnectionProgress,
    ConnectionReady,
    DiscoveryStarted,
    GateEvent,
    OperationFailed,
    PhaseChanged,
    TornDown,
)
from registrar.models import RegistrationSnapshot, RegistrationStatus, TxPhase

SnapshotListener = Callable[[RegistrationSnapshot], None]

PHASE_MESSAGES = {
    TxPhase.BROADCASTING: "Transaction broadcast to network...",
    TxPhase.IN_BLOCK: "Transaction in block, waiting for finalization...",
    TxPhase.FINALIZED: "Transaction finalized, checking result...",
}

# Statuses whose message must not be overwritten by connection chatter
BUSY_STATUSES = (RegistrationStatus.CHARGING, RegistrationStatus.SUCCESS, RegistrationStatus.ERROR)


class SubmissionLocked(RuntimeError):
    """The form was submitted before a successful fee payment."""


class RegistrationForm(BaseModel):
    username: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    terms_accepted: bool = False

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("Username must be at least 3 characters")
        return v

    @field_validator("terms_accepted")
    @classmethod
    def require_terms(cls, v: bool) -> bool:
        if not v:
            raise ValueError("You must accept the terms and conditions")
        return v


def transition(snapshot: RegistrationSnapshot, event: GateEvent) -> RegistrationSnapshot:
    """Apply one event to a snapshot. Pure."""
    if isinstance(event, ConnectionProgress):
        if snapshot.status in BUSY_STATUSES:
            return snapshot
        return replace(snapshot, status=RegistrationStatus.CONNECTING, message=event.message)

    if isinstance(event, ConnectionReady):
        snapshot = replace(snapshot, connected=True, chain_properties=event.properties)
        if snapshot.status in BUSY_STATUSES:
            return snapshot
        status = (
            RegistrationStatus.AWAITING_SELECTION if snapshot.accounts else RegistrationStatus.IDLE
        )
        return replace(snapshot, status=status, message="Connected to CESS network")

    if isinstance(event, ConnectionLost):
        snapshot = replace(snapshot, connected=False)
        if snapshot.status in BUSY_STATUSES:
            return snapshot
        return replace(snapshot, status=RegistrationStatus.CONNECTING, message=event.message)

    if isinstance(event, ConnectionFailedEvent | OperationFailed):
        keep = isinstance(event, OperationFailed) and event.keep_selection
        connected = snapshot.connected and not isinstance(event, ConnectionFailedEvent)
        return replace(
            snapshot,
            status=RegistrationStatus.ERROR,
            message=event.error.message,
            error=event.error,
            transaction_hash="",
            in_progress=False,
            connected=connected,
            selected_account=snapshot.selected_account if keep else None,
            wallet_info=snapshot.wallet_info if keep else None,
        )

    if isinstance(event, DiscoveryStarted):
        return replace(
            snapshot,
            status=RegistrationStatus.CONNECTING,
            message="Checking for Polkadot extension...",
            in_progress=True,
            error=None,
        )

    if isinstance(event, AccountsDiscovered):
        return replace(
            snapshot,
            status=RegistrationStatus.AWAITING_SELECTION,
            message=f"Found {len(event.accounts)} account(s)",
            accounts=event.accounts,
            in_progress=False,
        )

    if isinstance(event, BalanceCheckStarted):
        return replace(
            snapshot,
            status=RegistrationStatus.CHARGING,
            message=f"Checking balance for {event.account.label}...",
            selected_account=event.account,
            wallet_info=None,
            transaction_hash="",
            in_progress=True,
            error=None,
        )

    if isinstance(event, AccountValidated):
        info = event.wallet_info
        return replace(
            snapshot,
            wallet_info=info,
            message=f"Balance: {info.display_balance} {info.symbol}",
        )

    if isinstance(event, ChargeStarted):
        return replace(
            snapshot,
            status=RegistrationStatus.CHARGING,
            message=f"Processing {event.fee_display} registration fee...",
            selected_account=event.account,
            transaction_hash="",
            in_progress=True,
            error=None,
        )

    if isinstance(event, PhaseChanged):
        if snapshot.status != RegistrationStatus.CHARGING:
            return snapshot
        return replace(
            snapshot, message=PHASE_MESSAGES[event.phase], transaction_hash=event.tx_hash
        )

    if isinstance(event, ChargeSucceeded):
        return replace(
            snapshot,
            status=RegistrationStatus.SUCCESS,
            message=f"Connected & Charged: -{event.fee_display}",
            transaction_hash=event.tx_hash,
            in_progress=False,
            error=None,
        )

    if isinstance(event, TornDown):
        return RegistrationSnapshot(chain_properties=snapshot.chain_properties)

    raise TypeError(f"Unknown gate event: {event!r}")


class RegistrationGate:
    """
    Composes connection, discovery, balance check and fee payment into one
    registration flow.

    Gate operations never raise for flow failures; they land in the snapshot
    as an `error` status. Only `submit_registration` raises, since its
    failures belong to the form.
    """

    def __init__(
        self,
        config: RegistrarConfig,
        bridge: WalletBridge,
        backend_factory: BackendFactory | None = None,
        api: RegistrationClient | None = None,
    ) -> None:
        self.config = config
        self.snapshot = RegistrationSnapshot(
            chain_properties=ChainProperties(
                decimals=config.default_decimals, symbol=config.default_symbol
            )
        )
        self._listeners: list[SnapshotListener] = []
        self._charge_task: asyncio.Task[str] | None = None
        self._closed = False

        self.connection = ConnectionManager(config, backend_factory, listener=self.apply)
        self.directory = AccountDirectory(bridge, config.app_name)
        self.validator = BalanceValidator(config, self.connection.current_handle)
        self.orchestrator = FeeTransactionOrchestrator(
            config, self.connection.current_handle, bridge, listener=self.apply
        )
        self._owns_api = api is None
        self.api = api or RegistrationClient(config.api_url)

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a snapshot listener. Returns a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def apply(self, event: GateEvent) -> None:
        if self._closed and not isinstance(event, TornDown):
            logger.debug(f"Ignoring {type(event).__name__} after teardown")
            return
        updated = transition(self.snapshot, event)
        if updated == self.snapshot:
            return
        self.snapshot = updated
        logger.debug(f"Registration {updated.status.value}: {updated.message}")
        for listener in list(self._listeners):
            listener(updated)

    @property
    def can_submit(self) -> bool:
        return self.snapshot.can_submit

    async def start(self) -> bool:
        """Connect to the node. Returns False if the connection could not be made."""
        try:
            await self.connection.connect()
        except ConnectionFailed as e:
            logger.error(f"Registration cannot start: {e.message}")
            return False
        return True

    async def discover(self) -> list[Account]:
        self.apply(DiscoveryStarted())
        try:
            accounts = await self.directory.discover()
        except RegistrationError as e:
            self.apply(OperationFailed(e.classified(), keep_selection=False))
            return []
        self.apply(AccountsDiscovered(tuple(accounts)))
        return accounts

    async def select(self, account: Account) -> bool:
        """Check the account's balance and, if it covers the fee, charge it once."""
        if self.snapshot.in_progress or self.orchestrator.live:
            logger.warning(f"Ignoring selection of {account.label}: payment in progress")
            return False

        self.apply(BalanceCheckStarted(account))
        try:
            info = await self.validator.check_and_select(account)
        except Exception as e:
            error = classify_exception(e)
            logger.warning(f"Account {account.label} rejected: {error.message}")
            self.apply(OperationFailed(error, keep_selection=False))
            return False
        self.apply(AccountValidated(info))
        return await self._charge(account)

    async def retry(self) -> bool:
        """
        Charge the selected account again after a failed payment.

        No-op unless an account is selected, the node is connected and no
        payment is in flight.
        """
        snapshot = self.snapshot
        account = snapshot.selected_account
        if (
            snapshot.status != RegistrationStatus.ERROR
            or account is None
            or snapshot.in_progress
            or self.orchestrator.live
            or self.connection.handle is None
        ):
            logger.debug("Retry ignored: nothing to retry or not ready")
            return False
        logger.info(f"Retrying fee payment from {account.label}")
        return await self._charge(account)

    async def _charge(self, account: Account) -> bool:
        task = asyncio.create_task(self.orchestrator.charge_fee(account))
        self._charge_task = task
        try:
            tx_hash = await task
        except asyncio.CancelledError:
            if self._closed:
                return False
            raise
        except Exception as e:
            self.apply(OperationFailed(classify_exception(e), keep_selection=True))
            return False
        finally:
            if self._charge_task is task:
                self._charge_task = None

        fee_display = f"{self.config.registration_fee} {self.snapshot.chain_properties.symbol}"
        self.apply(ChargeSucceeded(tx_hash=tx_hash, fee_display=fee_display))
        return True

    def validate_form(
        self, username: str, password: str, terms_accepted: bool = True
    ) -> RegistrationForm:
        """
        Check the form fields without touching the ledger or the endpoint.

        Raises:
            pydantic.ValidationError: If the form fields are invalid
        """
        return RegistrationForm(
            username=username, password=password, terms_accepted=terms_accepted
        )

    async def submit_registration(
        self, username: str, password: str, terms_accepted: bool = True
    ) -> RegistrationResult:
        """
        Submit the registration form.

        Raises:
            SubmissionLocked: If the fee has not been paid in this session
            pydantic.ValidationError: If the form fields are invalid
            RegistrationApiError: If the endpoint refused the registration
        """
        snapshot = self.snapshot
        if not snapshot.can_submit or snapshot.selected_account is None:
            raise SubmissionLocked("Please complete the registration fee payment first")
        form = self.validate_form(username, password, terms_accepted)
        return await self.api.register(
            wallet=snapshot.selected_account.address,
            username=form.username,
            password=form.password,
            transaction_hash=snapshot.transaction_hash,
        )

    async def teardown(self) -> None:
        """Stop everything. Idempotent; nothing is applied afterwards."""
        if self._closed:
            return
        self._closed = True
        self.orchestrator.cancel()
        task = self._charge_task
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except (asyncio.CancelledError, RegistrationError):
                pass
        await self.orchestrator.release()
        await self.connection.teardown()
        if self._owns_api:
            await self.api.close()
        self.apply(TornDown())
        logger.info("Registration gate torn down")
