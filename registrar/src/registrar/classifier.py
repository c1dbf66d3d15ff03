"""
Map raw failure signals to ClassifiedError.

Two sources of failure reach the classifier:
- on-chain dispatch errors, which may be module errors resolvable through
  the runtime metadata
- exceptions from the transport, the wallet or the node's transaction pool,
  which are recognised by their message markers
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from chaincore.models import DispatchError, ModuleErrorInfo
from chaincore.rpc import RpcError, TransportClosedError
from chainwallet.bridge.base import BridgeError, SignerRejected
from loguru import logger

from registrar.errors import (
    ClassifiedError,
    RegistrationError,
    SigningCancelled,
    TransactionFailedGeneric,
    TransactionFailedOnChain,
    TransportDisconnected,
)

ModuleErrorResolver = Callable[[int, int], ModuleErrorInfo | None]

INVALID_TRANSACTION_MARKER = "1010: Invalid Transaction"
CANCELLED_MARKER = "cancelled"
DISCONNECT_MARKERS = ("disconnected", "connection closed", "connection lost", "not connected")
TIMEOUT_MARKERS = ("timeout", "timed out")


def dispatch_error_to_exception(
    error: DispatchError, resolver: ModuleErrorResolver | None
) -> RegistrationError:
    """Turn a dispatch error into TransactionFailedOnChain when the metadata knows it."""
    if error.is_module and resolver is not None:
        assert error.module_index is not None and error.error_index is not None
        try:
            info = resolver(error.module_index, error.error_index)
        except Exception as e:
            logger.warning(f"Module error lookup failed for {error}: {e}")
            info = None
        if info is not None:
            return TransactionFailedOnChain(info.section, info.name, info.docs)
    return TransactionFailedGeneric(f"Transaction failed on-chain ({error})")


def classify_dispatch_error(
    error: DispatchError, resolver: ModuleErrorResolver | None
) -> ClassifiedError:
    return dispatch_error_to_exception(error, resolver).classified()


def exception_to_registration_error(exc: BaseException) -> RegistrationError:
    """Normalise any failure into the registration taxonomy."""
    if isinstance(exc, RegistrationError):
        return exc
    if isinstance(exc, SignerRejected):
        return SigningCancelled("Transaction was cancelled in the wallet")

    text = str(exc)
    lowered = text.lower()

    if INVALID_TRANSACTION_MARKER.lower() in lowered:
        return TransactionFailedGeneric("Invalid transaction. The fee might have changed.")
    if CANCELLED_MARKER in lowered:
        return SigningCancelled("Transaction was cancelled in the wallet")
    if isinstance(exc, TransportClosedError) or any(m in lowered for m in DISCONNECT_MARKERS):
        return TransportDisconnected(
            "Network disconnected during transaction. Please try again."
        )
    if isinstance(exc, asyncio.TimeoutError) or any(m in lowered for m in TIMEOUT_MARKERS):
        return TransportDisconnected("Network request timed out. Please try again.")
    if isinstance(exc, RpcError):
        return TransactionFailedGeneric(f"Node rejected the transaction: {exc.message}")
    if isinstance(exc, BridgeError):
        return TransactionFailedGeneric(f"Wallet error: {text}")
    return TransactionFailedGeneric(f"Error: {text or type(exc).__name__}")


def classify_exception(exc: BaseException) -> ClassifiedError:
    return exception_to_registration_error(exc).classified()
