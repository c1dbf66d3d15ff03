"""
Registration error taxonomy.

Every failure the flow can surface is a RegistrationError subclass with a
stable ErrorKind. The gate never shows raw exceptions; it shows the
ClassifiedError derived from one.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorKind(str, Enum):
    CONNECTION_FAILED = "connection_failed"
    TRANSPORT_DISCONNECTED = "transport_disconnected"
    EXTENSION_UNAVAILABLE = "extension_unavailable"
    NO_ACCOUNTS_FOUND = "no_accounts_found"
    NOT_READY = "not_ready"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    SIGNING_UNAVAILABLE = "signing_unavailable"
    SIGNING_CANCELLED = "signing_cancelled"
    TRANSACTION_FAILED_ON_CHAIN = "transaction_failed_on_chain"
    TRANSACTION_FAILED_GENERIC = "transaction_failed_generic"
    REGISTRATION_API_ERROR = "registration_api_error"


class Recovery(str, Enum):
    """What the user can do about an error."""

    RETRY_PAYMENT = "retry-payment"
    RECONNECT = "reconnect"
    NONE = "none"


@dataclass(frozen=True)
class ClassifiedError:
    kind: ErrorKind
    message: str
    recovery: Recovery = Recovery.NONE
    section: str | None = None
    name: str | None = None
    docs: str | None = None


class RegistrationError(Exception):
    kind: ErrorKind = ErrorKind.TRANSACTION_FAILED_GENERIC
    recovery: Recovery = Recovery.NONE

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def classified(self) -> ClassifiedError:
        return ClassifiedError(kind=self.kind, message=self.message, recovery=self.recovery)


class ConnectionFailed(RegistrationError):
    kind = ErrorKind.CONNECTION_FAILED
    recovery = Recovery.RECONNECT


class TransportDisconnected(RegistrationError):
    kind = ErrorKind.TRANSPORT_DISCONNECTED
    recovery = Recovery.RETRY_PAYMENT


class ExtensionUnavailable(RegistrationError):
    kind = ErrorKind.EXTENSION_UNAVAILABLE


class NoAccountsFound(RegistrationError):
    kind = ErrorKind.NO_ACCOUNTS_FOUND


class NotReady(RegistrationError):
    kind = ErrorKind.NOT_READY
    recovery = Recovery.RECONNECT


class InsufficientBalance(RegistrationError):
    kind = ErrorKind.INSUFFICIENT_BALANCE

    def __init__(self, required: int, available: int, message: str | None = None) -> None:
        self.required = required
        self.available = available
        super().__init__(message or f"Insufficient balance: need {required}, have {available}")


class SigningUnavailable(RegistrationError):
    kind = ErrorKind.SIGNING_UNAVAILABLE


class SigningCancelled(RegistrationError):
    kind = ErrorKind.SIGNING_CANCELLED
    recovery = Recovery.RETRY_PAYMENT


class TransactionFailedOnChain(RegistrationError):
    kind = ErrorKind.TRANSACTION_FAILED_ON_CHAIN
    recovery = Recovery.RETRY_PAYMENT

    def __init__(self, section: str, name: str, docs: str = "") -> None:
        self.section = section
        self.name = name
        self.docs = docs
        super().__init__(f"{section}.{name}: {docs}" if docs else f"{section}.{name}")

    def classified(self) -> ClassifiedError:
        return ClassifiedError(
            kind=self.kind,
            message=self.message,
            recovery=self.recovery,
            section=self.section,
            name=self.name,
            docs=self.docs,
        )


class TransactionFailedGeneric(RegistrationError):
    kind = ErrorKind.TRANSACTION_FAILED_GENERIC
    recovery = Recovery.RETRY_PAYMENT


class RegistrationApiError(RegistrationError):
    kind = ErrorKind.REGISTRATION_API_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
