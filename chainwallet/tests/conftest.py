"""
Test configuration for chainwallet tests.
"""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from chaincore.codec import ss58_encode

from chainwallet.backends.substrate import SubstrateBackend


@pytest.fixture
def address() -> str:
    return ss58_encode(b"\x01" * 32)


@pytest.fixture
def service_address() -> str:
    return ss58_encode(b"\x02" * 32)


def make_rpc_client(responses: dict[str, Any]) -> MagicMock:
    """A WebSocketRpcClient stand-in answering from a method -> result map."""
    client = MagicMock()
    client.is_connected.return_value = True
    client.connect = AsyncMock()
    client.close = AsyncMock()

    async def request(method: str, params: list[Any] | None = None) -> Any:
        value = responses[method]
        if isinstance(value, Exception):
            raise value
        if callable(value):
            return value(params)
        return value

    client.request = AsyncMock(side_effect=request)
    rpc_subscription = MagicMock()
    rpc_subscription.unsubscribe = AsyncMock()
    client.subscribe = AsyncMock(return_value=rpc_subscription)
    return client


@pytest.fixture
def rpc_responses() -> dict[str, Any]:
    return {
        "state_getMetadata": "0x6d657461",
        "system_properties": {"tokenDecimals": [18], "tokenSymbol": ["TCESS"]},
        "chain_getBlockHash": "0xgenesis",
        "chain_getFinalizedHead": "0xhead",
        "state_getRuntimeVersion": {"specVersion": 120, "transactionVersion": 3},
        "system_accountNextIndex": 7,
        "state_getStorage": None,
    }


@pytest.fixture
def backend_factory(rpc_responses, monkeypatch):
    """Build a SubstrateBackend over a mocked RPC client and mocked metadata."""
    metadata = MagicMock()
    metadata.has_call.side_effect = lambda pallet, call: (pallet, call) in {
        ("Balances", "transfer_keep_alive"),
        ("Balances", "transfer"),
    }
    metadata.decode_account_free.return_value = 0
    monkeypatch.setattr(
        "chainwallet.backends.substrate.RuntimeMetadata", MagicMock(return_value=metadata)
    )

    def factory() -> SubstrateBackend:
        client = make_rpc_client(rpc_responses)
        return SubstrateBackend("ws://node.test", client=client)

    return factory
