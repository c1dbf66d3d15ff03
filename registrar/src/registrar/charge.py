"""
Registration fee payment.

One charge is one transfer to the service address, followed through the
node's status stream until finalization. There is no timeout on the
finalization wait; teardown is the only way out besides a terminal status,
so every callback checks the cancel token and the attempt identity before
touching state.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from functools import partial

from chaincore.constants import POOL_REJECTION_STATUSES, TRANSFER_CALLS
from chaincore.models import Account, ExtrinsicStatus, TransactionUpdate, TransferInstruction
from chainwallet.backends import LedgerBackend, Subscription
from chainwallet.bridge import WalletBridge
from loguru import logger

from registrar.classifier import dispatch_error_to_exception, exception_to_registration_error
from registrar.config import RegistrarConfig
from registrar.errors import (
    NotReady,
    RegistrationError,
    SigningUnavailable,
    TransactionFailedGeneric,
)
from registrar.events import ChargeStarted, PhaseChanged
from registrar.models import TransactionAttempt, TxPhase

HandleProvider = Callable[[], LedgerBackend | None]
ChargeEvent = ChargeStarted | PhaseChanged
ChargeListener = Callable[[ChargeEvent], None]

STATUS_PHASES = {
    ExtrinsicStatus.FUTURE: TxPhase.BROADCASTING,
    ExtrinsicStatus.READY: TxPhase.BROADCASTING,
    ExtrinsicStatus.BROADCAST: TxPhase.BROADCASTING,
    ExtrinsicStatus.IN_BLOCK: TxPhase.IN_BLOCK,
    ExtrinsicStatus.FINALIZED: TxPhase.FINALIZED,
}


class CancelToken:
    """Tripped once on teardown; never reset."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class FeeTransactionOrchestrator:
    def __init__(
        self,
        config: RegistrarConfig,
        handle_provider: HandleProvider,
        bridge: WalletBridge,
        listener: ChargeListener | None = None,
    ) -> None:
        self.config = config
        self.handle_provider = handle_provider
        self.bridge = bridge
        self.listener = listener
        self.token = CancelToken()
        self.attempt: TransactionAttempt | None = None
        self._outcome: asyncio.Future[str] | None = None
        self._subscription: Subscription | None = None

    @property
    def live(self) -> bool:
        return self.attempt is not None and self.attempt.live

    def _emit(self, event: ChargeEvent) -> None:
        if self.listener is not None and not self.token.cancelled:
            self.listener(event)

    def _check_cancelled(self) -> None:
        if self.token.cancelled:
            raise asyncio.CancelledError()

    def build_instruction(self, backend: LedgerBackend, amount: int) -> TransferInstruction:
        """Pick the most preferred transfer call the runtime still has."""
        for call in TRANSFER_CALLS:
            if backend.supports_call("Balances", call):
                if call != TRANSFER_CALLS[0]:
                    logger.info(f"Runtime lacks Balances.{TRANSFER_CALLS[0]}, using {call}")
                return TransferInstruction(
                    pallet="Balances", call=call, dest=self.config.service_address, amount=amount
                )
        raise TransactionFailedGeneric("Runtime exposes no Balances transfer call")

    async def charge_fee(self, account: Account) -> str:
        """
        Pay the registration fee from `account` and wait for finalization.

        Returns:
            The extrinsic hash of the finalized, successful transfer

        Raises:
            NotReady: If there is no live connection
            SigningUnavailable: If the wallet cannot sign for the account
            RegistrationError: Any other failure, already classified
            asyncio.CancelledError: If cancel() was called while waiting
        """
        if self.live:
            raise TransactionFailedGeneric("A fee payment is already in progress")
        if self.token.cancelled:
            raise NotReady("Registration has been closed")
        backend = self.handle_provider()
        if backend is None:
            raise NotReady("Network not ready. Please try again.")

        attempt = TransactionAttempt(account=account)
        self.attempt = attempt
        outcome: asyncio.Future[str] = asyncio.get_running_loop().create_future()
        self._outcome = outcome

        try:
            properties = await backend.chain_properties()
            amount = self.config.fee_in_minor_units(properties.decimals)
            instruction = self.build_instruction(backend, amount)
            fee_display = f"{self.config.registration_fee} {properties.symbol}"
            self._emit(ChargeStarted(account=account, fee_display=fee_display))

            signer = await self.bridge.get_signer(account.address)
            if signer is None:
                raise SigningUnavailable(f"Wallet cannot sign for {account.label}")

            context = await backend.signing_context(account.address)
            self._check_cancelled()
            extrinsic = await signer.sign(instruction, context)
            self._check_cancelled()

            self._subscription = await backend.submit_and_watch(
                extrinsic,
                on_update=partial(self._on_update, attempt, backend),
                on_error=partial(self._on_stream_error, attempt),
            )
            # Statuses may already have resolved the attempt before submit returned
            tx_hash = await outcome
            logger.info(f"Registration fee paid in {tx_hash}")
            return tx_hash
        except asyncio.CancelledError:
            attempt.resolved = True
            raise
        except Exception as e:
            error = exception_to_registration_error(e)
            if not attempt.resolved:
                attempt.resolved = True
                attempt.error = error.classified()
            logger.error(f"Fee payment from {account.label} failed: {error.message}")
            if error is e:
                raise
            raise error from e
        finally:
            if not outcome.done():
                outcome.cancel()
            elif not outcome.cancelled():
                outcome.exception()
            await self.release()

    def _on_update(
        self, attempt: TransactionAttempt, backend: LedgerBackend, update: TransactionUpdate
    ) -> None:
        if self.token.cancelled or attempt is not self.attempt or attempt.resolved:
            logger.debug(f"Dropping late status {update.status.value} for {update.tx_hash}")
            return
        attempt.tx_hash = attempt.tx_hash or update.tx_hash
        status = update.status

        if status == ExtrinsicStatus.RETRACTED:
            logger.warning(f"Block {update.block_hash} containing {update.tx_hash} was retracted")
            return
        if status.value in POOL_REJECTION_STATUSES:
            self._fail(
                attempt,
                TransactionFailedGeneric(f"Transaction {status.value} by the network"),
            )
            return

        phase = STATUS_PHASES[status]
        if phase <= attempt.phase:
            logger.debug(f"Ignoring non-advancing status {status.value} at {attempt.phase.name}")
            return
        if update.block_hash:
            attempt.block_hash = update.block_hash
        for next_phase in TxPhase:
            if attempt.phase < next_phase <= phase:
                attempt.phase = next_phase
                self._emit(PhaseChanged(phase=next_phase, tx_hash=attempt.tx_hash))

        if phase == TxPhase.FINALIZED:
            self._finalize(attempt, backend, update)

    def _finalize(
        self, attempt: TransactionAttempt, backend: LedgerBackend, update: TransactionUpdate
    ) -> None:
        succeeded = any(event.matches("System", "ExtrinsicSuccess") for event in update.events)
        if succeeded and update.dispatch_error is None:
            attempt.resolved = True
            if not self._outcome_done():
                assert self._outcome is not None
                self._outcome.set_result(attempt.tx_hash)
            return

        if update.dispatch_error is not None:
            error = dispatch_error_to_exception(update.dispatch_error, backend.find_module_error)
        else:
            error = TransactionFailedGeneric("Transaction failed on-chain")
        self._fail(attempt, error)

    def _on_stream_error(self, attempt: TransactionAttempt, exc: Exception) -> None:
        if self.token.cancelled or attempt is not self.attempt or attempt.resolved:
            logger.debug(f"Dropping late stream error: {exc}")
            return
        logger.warning(f"Status stream for {attempt.tx_hash or 'pending tx'} lost: {exc}")
        self._fail(attempt, exception_to_registration_error(exc))

    def _fail(self, attempt: TransactionAttempt, error: RegistrationError) -> None:
        attempt.resolved = True
        attempt.error = error.classified()
        if not self._outcome_done():
            assert self._outcome is not None
            self._outcome.set_exception(error)

    def _outcome_done(self) -> bool:
        return self._outcome is None or self._outcome.done()

    async def release(self) -> None:
        """Tear down the status subscription, if any. Idempotent."""
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.unsubscribe()

    def cancel(self) -> None:
        """Stop following the current attempt; nothing is applied afterwards."""
        self.token.cancel()
        if self.attempt is not None:
            self.attempt.resolved = True
        if self._outcome is not None and not self._outcome.done():
            self._outcome.cancel()
