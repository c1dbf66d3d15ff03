"""
Core data models for ledger interaction.

Pydantic models are used for values crossing a trust boundary (node and
wallet responses); plain dataclasses for internal status plumbing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_DOWN, Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from chaincore.constants import DEFAULT_TOKEN_DECIMALS, DEFAULT_TOKEN_SYMBOL


def _first(value: Any) -> Any:
    if isinstance(value, list | tuple):
        return value[0] if value else None
    return value


class ChainProperties(BaseModel):
    decimals: int = Field(default=DEFAULT_TOKEN_DECIMALS, ge=0, le=38)
    symbol: str = Field(default=DEFAULT_TOKEN_SYMBOL, min_length=1)

    model_config = {"frozen": True}

    @classmethod
    def from_rpc(
        cls,
        properties: dict[str, Any] | None,
        default_decimals: int = DEFAULT_TOKEN_DECIMALS,
        default_symbol: str = DEFAULT_TOKEN_SYMBOL,
    ) -> ChainProperties:
        """
        Build from a `system_properties` result.

        Multi-asset chains report tokenDecimals/tokenSymbol as lists; the
        native asset is always the first entry.
        """
        properties = properties or {}
        decimals = _first(properties.get("tokenDecimals"))
        symbol = _first(properties.get("tokenSymbol"))
        return cls(
            decimals=default_decimals if decimals is None else int(decimals),
            symbol=symbol or default_symbol,
        )


class Account(BaseModel):
    address: str = Field(..., min_length=1)
    display_name: str = ""

    model_config = {"frozen": True}

    @property
    def label(self) -> str:
        return self.display_name or self.address


def format_amount(amount: int, decimals: int, places: int = 2) -> str:
    """Render a minor-unit amount with `places` fractional digits, truncated."""
    value = Decimal(amount).scaleb(-decimals).quantize(Decimal(1).scaleb(-places), ROUND_DOWN)
    return f"{value:.{places}f}"


class WalletInfo(BaseModel):
    address: str
    name: str = ""
    balance: int = Field(..., ge=0)  # minor units
    decimals: int = Field(..., ge=0)
    symbol: str

    model_config = {"frozen": True}

    @property
    def display_balance(self) -> str:
        return format_amount(self.balance, self.decimals)


class ExtrinsicStatus(str, Enum):
    """Statuses reported by author_submitAndWatchExtrinsic."""

    FUTURE = "future"
    READY = "ready"
    BROADCAST = "broadcast"
    IN_BLOCK = "inBlock"
    RETRACTED = "retracted"
    FINALITY_TIMEOUT = "finalityTimeout"
    FINALIZED = "finalized"
    USURPED = "usurped"
    DROPPED = "dropped"
    INVALID = "invalid"


def parse_extrinsic_status(result: Any) -> tuple[ExtrinsicStatus, str | None]:
    """
    Parse an `author_extrinsicUpdate` notification payload.

    Payloads are either a bare string ("ready") or a single-key object
    ({"inBlock": "0x..."}, {"broadcast": [peers]}).

    Returns:
        The status and the associated block hash, if any
    """
    if isinstance(result, str):
        return ExtrinsicStatus(result), None
    if isinstance(result, dict) and len(result) == 1:
        key, value = next(iter(result.items()))
        status = ExtrinsicStatus(key)
        block_hash = value if isinstance(value, str) else None
        return status, block_hash
    raise ValueError(f"Unrecognised extrinsic status: {result!r}")


@dataclass(frozen=True)
class ChainEvent:
    pallet: str
    name: str
    attributes: Any = None
    extrinsic_index: int | None = None

    def matches(self, pallet: str, name: str) -> bool:
        return self.pallet == pallet and self.name == name


@dataclass(frozen=True)
class DispatchError:
    """
    A dispatch failure as reported by the runtime.

    Module errors carry (module_index, error_index); all other variants
    (BadOrigin, Token, Arithmetic, ...) only keep their raw representation.
    """

    raw: Any
    module_index: int | None = None
    error_index: int | None = None

    @property
    def is_module(self) -> bool:
        return self.module_index is not None and self.error_index is not None

    @classmethod
    def from_value(cls, value: Any) -> DispatchError:
        if isinstance(value, dict) and "Module" in value:
            module = value["Module"]
            if isinstance(module, list | tuple):
                module_index, error_index = module[0], module[1]
            else:
                module_index, error_index = module["index"], module["error"]
            # Since runtime v9190 the error is a 4-byte array, first byte is the index
            if isinstance(error_index, str):
                error_index = bytes.fromhex(error_index.removeprefix("0x"))[0]
            elif isinstance(error_index, list | tuple | bytes):
                error_index = error_index[0]
            return cls(raw=value, module_index=int(module_index), error_index=int(error_index))
        return cls(raw=value)

    def __str__(self) -> str:
        if self.is_module:
            return f"Module(index={self.module_index}, error={self.error_index})"
        if isinstance(self.raw, dict) and len(self.raw) == 1:
            key, value = next(iter(self.raw.items()))
            return f"{key}: {value}" if value is not None else str(key)
        return str(self.raw)


@dataclass(frozen=True)
class ModuleErrorInfo:
    section: str
    name: str
    docs: str = ""


@dataclass
class TransactionUpdate:
    """One delivery of the extrinsic status stream."""

    status: ExtrinsicStatus
    tx_hash: str
    block_hash: str | None = None
    events: list[ChainEvent] = field(default_factory=list)
    dispatch_error: DispatchError | None = None


@dataclass(frozen=True)
class TransferInstruction:
    pallet: str
    call: str
    dest: str
    amount: int

    def as_call(self) -> dict[str, Any]:
        return {
            "call_module": self.pallet,
            "call_function": self.call,
            "call_args": {"dest": {"Id": self.dest}, "value": self.amount},
        }


@dataclass(frozen=True)
class SigningContext:
    """Chain state a signer needs to build a valid extrinsic."""

    genesis_hash: str
    block_hash: str
    spec_version: int
    transaction_version: int
    nonce: int
