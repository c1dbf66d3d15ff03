"""
Substrate node backend over WebSocket JSON-RPC.

Queries go through plain RPC methods; the only SCALE decoding done locally
is runtime metadata, System.Events and System.Account, via
chaincore.metadata.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable
from typing import Any

from chaincore.codec import extrinsic_hash, system_account_key
from chaincore.constants import DEFAULT_TOKEN_DECIMALS, DEFAULT_TOKEN_SYMBOL, SYSTEM_EVENTS_KEY
from chaincore.metadata import RuntimeMetadata
from chaincore.models import (
    ChainEvent,
    ChainProperties,
    DispatchError,
    ExtrinsicStatus,
    ModuleErrorInfo,
    SigningContext,
    TransactionUpdate,
    parse_extrinsic_status,
)
from chaincore.rpc import RpcSubscription, TransportClosedError, WebSocketRpcClient
from loguru import logger

from chainwallet.backends.base import LedgerBackend, Subscription


def dispatch_error_from_events(events: list[ChainEvent]) -> DispatchError | None:
    """Pull the dispatch error out of a System.ExtrinsicFailed event, if any."""
    for event in events:
        if not event.matches("System", "ExtrinsicFailed"):
            continue
        attributes = event.attributes
        if isinstance(attributes, dict):
            value = attributes.get("dispatch_error")
        elif isinstance(attributes, list | tuple) and attributes:
            value = attributes[0]
        else:
            value = attributes
        if value is not None:
            return DispatchError.from_value(value)
    return None


class ExtrinsicWatch(Subscription):
    """Status stream for one submitted extrinsic."""

    def __init__(
        self,
        backend: SubstrateBackend,
        tx_hash: str,
        on_update: Callable[[TransactionUpdate], None],
        on_error: Callable[[Exception], None],
    ) -> None:
        self.backend = backend
        self.tx_hash = tx_hash
        self.on_update = on_update
        self.on_error = on_error
        self.rpc_subscription: RpcSubscription | None = None
        self.active = True
        self._event_tasks: set[asyncio.Task[None]] = set()

    def handle_result(self, result: Any) -> None:
        if not self.active:
            return
        try:
            status, block_hash = parse_extrinsic_status(result)
        except ValueError as e:
            logger.warning(f"Ignoring status for {self.tx_hash}: {e}")
            return

        logger.debug(f"Extrinsic {self.tx_hash} status: {status.value}")
        if status == ExtrinsicStatus.FINALIZED and block_hash:
            # Events are only known once the block is fetched
            task = asyncio.create_task(self._deliver_with_events(status, block_hash))
            self._event_tasks.add(task)
            task.add_done_callback(self._event_tasks.discard)
            return
        self.on_update(
            TransactionUpdate(status=status, tx_hash=self.tx_hash, block_hash=block_hash)
        )

    def handle_close(self, error: Exception) -> None:
        if self.active:
            self.active = False
            self.on_error(error)

    async def _deliver_with_events(self, status: ExtrinsicStatus, block_hash: str) -> None:
        try:
            events = await self.backend.extrinsic_events(self.tx_hash, block_hash)
        except Exception as e:
            logger.error(f"Failed to fetch events for {self.tx_hash} in {block_hash}: {e}")
            if self.active:
                self.active = False
                self.on_error(e)
            return
        if not self.active:
            return
        self.on_update(
            TransactionUpdate(
                status=status,
                tx_hash=self.tx_hash,
                block_hash=block_hash,
                events=events,
                dispatch_error=dispatch_error_from_events(events),
            )
        )

    async def unsubscribe(self) -> None:
        self.active = False
        for task in list(self._event_tasks):
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self.rpc_subscription is not None:
            await self.rpc_subscription.unsubscribe()


class SubstrateBackend(LedgerBackend):
    """
    Ledger backend for Substrate-based chains (CESS, Polkadot, ...).

    One instance is one WebSocket session; reconnecting means building a
    new backend.
    """

    def __init__(
        self,
        node_url: str,
        timeout: float = 30.0,
        default_decimals: int = DEFAULT_TOKEN_DECIMALS,
        default_symbol: str = DEFAULT_TOKEN_SYMBOL,
        client: WebSocketRpcClient | None = None,
    ) -> None:
        self.node_url = node_url
        self.default_decimals = default_decimals
        self.default_symbol = default_symbol
        self.client = client or WebSocketRpcClient(node_url, timeout=timeout)
        self.client.on_disconnect = self._handle_disconnect
        self.client.on_error = self._handle_error
        self.metadata: RuntimeMetadata | None = None
        self._properties: ChainProperties | None = None
        self._ready = False
        self.on_disconnect = None
        self.on_error = None

    def _handle_disconnect(self) -> None:
        self._ready = False
        if self.on_disconnect:
            self.on_disconnect()

    def _handle_error(self, error: Exception) -> None:
        self._ready = False
        if self.on_error:
            self.on_error(error)

    async def wait_ready(self) -> None:
        await self.client.connect()
        metadata_hex = await self.client.request("state_getMetadata")
        self.metadata = await asyncio.to_thread(RuntimeMetadata, metadata_hex)
        properties = await self.client.request("system_properties")
        self._properties = ChainProperties.from_rpc(
            properties, self.default_decimals, self.default_symbol
        )
        self._ready = True
        logger.info(
            f"Node {self.node_url} ready "
            f"({self._properties.symbol}, {self._properties.decimals} decimals)"
        )

    def is_ready(self) -> bool:
        return self._ready and self.client.is_connected()

    def _require_ready(self) -> None:
        if not self.is_ready():
            raise TransportClosedError("Backend is not connected")

    async def chain_properties(self) -> ChainProperties:
        self._require_ready()
        assert self._properties is not None
        return self._properties

    async def free_balance(self, address: str) -> int:
        self._require_ready()
        storage = await self.client.request("state_getStorage", [system_account_key(address)])
        assert self.metadata is not None
        return self.metadata.decode_account_free(storage)

    def supports_call(self, pallet: str, call: str) -> bool:
        if self.metadata is None:
            return False
        return self.metadata.has_call(pallet, call)

    async def signing_context(self, address: str) -> SigningContext:
        self._require_ready()
        genesis_hash = await self.client.request("chain_getBlockHash", [0])
        block_hash = await self.client.request("chain_getFinalizedHead")
        runtime = await self.client.request("state_getRuntimeVersion", [block_hash])
        nonce = await self.client.request("system_accountNextIndex", [address])
        return SigningContext(
            genesis_hash=genesis_hash,
            block_hash=block_hash,
            spec_version=int(runtime["specVersion"]),
            transaction_version=int(runtime["transactionVersion"]),
            nonce=int(nonce),
        )

    async def submit_and_watch(
        self,
        extrinsic: str,
        on_update: Callable[[TransactionUpdate], None],
        on_error: Callable[[Exception], None],
    ) -> Subscription:
        self._require_ready()
        tx_hash = extrinsic_hash(extrinsic)
        watch = ExtrinsicWatch(self, tx_hash, on_update, on_error)
        logger.info(f"Submitting extrinsic {tx_hash}")
        watch.rpc_subscription = await self.client.subscribe(
            "author_submitAndWatchExtrinsic",
            [extrinsic],
            "author_unwatchExtrinsic",
            on_result=watch.handle_result,
            on_close=watch.handle_close,
        )
        return watch

    async def extrinsic_events(self, tx_hash: str, block_hash: str) -> list[ChainEvent]:
        """Events emitted by one extrinsic in a given block."""
        assert self.metadata is not None
        block = await self.client.request("chain_getBlock", [block_hash])
        extrinsics = block["block"]["extrinsics"]
        index = next(
            (i for i, ext in enumerate(extrinsics) if extrinsic_hash(ext) == tx_hash),
            None,
        )
        if index is None:
            logger.warning(f"Extrinsic {tx_hash} not found in block {block_hash}")
            return []

        storage = await self.client.request("state_getStorage", [SYSTEM_EVENTS_KEY, block_hash])
        if not storage:
            return []
        events = await asyncio.to_thread(self.metadata.decode_events, storage)
        return [event for event in events if event.extrinsic_index == index]

    def find_module_error(self, module_index: int, error_index: int) -> ModuleErrorInfo | None:
        if self.metadata is None:
            return None
        return self.metadata.module_error(module_index, error_index)

    async def close(self) -> None:
        self._ready = False
        await self.client.close()
