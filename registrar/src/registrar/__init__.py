"""
Block+ Registrar

Gates Block+ account registration behind a registration fee paid on the
CESS network: connect, discover wallet accounts, check the balance, pay,
follow the transfer to finalization, then unlock the form.
"""

__version__ = "0.3.0"

from registrar.config import RegistrarConfig, Settings, get_settings
from registrar.errors import ClassifiedError, ErrorKind, Recovery, RegistrationError
from registrar.gate import RegistrationGate, transition
from registrar.models import RegistrationSnapshot, RegistrationStatus, TxPhase

__all__ = [
    "ClassifiedError",
    "ErrorKind",
    "Recovery",
    "RegistrarConfig",
    "RegistrationError",
    "RegistrationGate",
    "RegistrationSnapshot",
    "RegistrationStatus",
    "Settings",
    "TxPhase",
    "get_settings",
    "transition",
]
