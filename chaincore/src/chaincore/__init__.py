"""
chaincore - Core library for the Block+ registration components

Provides shared ledger models, SS58/storage codecs, runtime metadata
decoding and the WebSocket JSON-RPC transport.
"""

__version__ = "0.3.0"

from chaincore.codec import (
    AddressError,
    extrinsic_hash,
    ss58_decode,
    ss58_encode,
    system_account_key,
)
from chaincore.constants import DEFAULT_TOKEN_DECIMALS, DEFAULT_TOKEN_SYMBOL
from chaincore.models import (
    Account,
    ChainEvent,
    ChainProperties,
    DispatchError,
    ExtrinsicStatus,
    ModuleErrorInfo,
    SigningContext,
    TransactionUpdate,
    TransferInstruction,
    WalletInfo,
    format_amount,
    parse_extrinsic_status,
)
from chaincore.rpc import RpcError, RpcSubscription, TransportClosedError, WebSocketRpcClient

__all__ = [
    "Account",
    "AddressError",
    "ChainEvent",
    "ChainProperties",
    "DEFAULT_TOKEN_DECIMALS",
    "DEFAULT_TOKEN_SYMBOL",
    "DispatchError",
    "ExtrinsicStatus",
    "ModuleErrorInfo",
    "RpcError",
    "RpcSubscription",
    "SigningContext",
    "TransactionUpdate",
    "TransferInstruction",
    "TransportClosedError",
    "WalletInfo",
    "WebSocketRpcClient",
    "extrinsic_hash",
    "format_amount",
    "parse_extrinsic_status",
    "ss58_decode",
    "ss58_encode",
    "system_account_key",
]
