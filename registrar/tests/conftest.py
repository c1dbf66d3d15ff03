"""
Test configuration for registrar tests.

In-memory stand-ins for the ledger node and the wallet bridge. Status
deliveries are driven by the test through FakeBackend.push().
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from decimal import Decimal

import pytest
from chaincore.codec import extrinsic_hash, ss58_encode
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
)
from chainwallet.backends import LedgerBackend, Subscription
from chainwallet.bridge import BridgeError, Signer, WalletBridge

from registrar.config import RegistrarConfig

FEE_MINOR = 3 * 10**12
SIGNED_EXTRINSIC = "0x2d028400deadbeef"


class FakeSubscription(Subscription):
    def __init__(self) -> None:
        self.unsubscribed = 0

    async def unsubscribe(self) -> None:
        self.unsubscribed += 1


class FakeBackend(LedgerBackend):
    def __init__(
        self,
        balances: dict[str, int] | None = None,
        decimals: int = 12,
        symbol: str = "TCESS",
        calls: tuple[str, ...] = ("transfer_keep_alive", "transfer"),
    ) -> None:
        self.balances = balances or {}
        self.properties = ChainProperties(decimals=decimals, symbol=symbol)
        self.calls = set(calls)
        self.module_errors: dict[tuple[int, int], ModuleErrorInfo] = {}
        self.ready = False
        self.closed = False
        self.ready_error: Exception | None = None
        self.ready_gate: asyncio.Event | None = None
        self.submit_error: Exception | None = None
        self.submit_hook: Callable[[FakeBackend], None] | None = None
        self.submitted: list[str] = []
        self.tx_hash = ""
        self.on_update: Callable[[TransactionUpdate], None] | None = None
        self.on_stream_error: Callable[[Exception], None] | None = None
        self.subscription = FakeSubscription()
        self.on_disconnect = None
        self.on_error = None

    async def wait_ready(self) -> None:
        if self.ready_gate is not None:
            await self.ready_gate.wait()
        if self.ready_error is not None:
            raise self.ready_error
        self.ready = True

    def is_ready(self) -> bool:
        return self.ready and not self.closed

    async def chain_properties(self) -> ChainProperties:
        return self.properties

    async def free_balance(self, address: str) -> int:
        return self.balances.get(address, 0)

    def supports_call(self, pallet: str, call: str) -> bool:
        return pallet == "Balances" and call in self.calls

    async def signing_context(self, address: str) -> SigningContext:
        return SigningContext("0xgenesis", "0xhead", 100, 1, 0)

    async def submit_and_watch(self, extrinsic, on_update, on_error) -> Subscription:
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append(extrinsic)
        self.tx_hash = extrinsic_hash(extrinsic)
        self.on_update = on_update
        self.on_stream_error = on_error
        if self.submit_hook is not None:
            self.submit_hook(self)
        return self.subscription

    def find_module_error(self, module_index: int, error_index: int) -> ModuleErrorInfo | None:
        return self.module_errors.get((module_index, error_index))

    async def close(self) -> None:
        self.closed = True
        self.ready = False

    def push(
        self,
        status: ExtrinsicStatus,
        block_hash: str | None = None,
        events: list[ChainEvent] | None = None,
        dispatch_error: DispatchError | None = None,
    ) -> None:
        assert self.on_update is not None
        self.on_update(
            TransactionUpdate(
                status=status,
                tx_hash=self.tx_hash,
                block_hash=block_hash,
                events=events or [],
                dispatch_error=dispatch_error,
            )
        )

    def finalize_success(self) -> None:
        self.push(ExtrinsicStatus.READY)
        self.push(ExtrinsicStatus.IN_BLOCK, "0xblock")
        self.push(
            ExtrinsicStatus.FINALIZED,
            "0xblock",
            events=[ChainEvent("System", "ExtrinsicSuccess", extrinsic_index=1)],
        )

    def drop(self) -> None:
        """Simulate the node going away."""
        self.ready = False
        if self.on_disconnect is not None:
            self.on_disconnect()


class FakeSigner(Signer):
    def __init__(self, address: str, bridge: FakeBridge) -> None:
        self.address = address
        self.bridge = bridge

    async def sign(self, instruction: TransferInstruction, context: SigningContext) -> str:
        self.bridge.instructions.append(instruction)
        if self.bridge.sign_errors:
            raise self.bridge.sign_errors.pop(0)
        return SIGNED_EXTRINSIC


class FakeBridge(WalletBridge):
    def __init__(self, accounts: list[Account], extensions: list[str] | None = None) -> None:
        self.accounts = accounts
        self.extensions = ["polkadot-js"] if extensions is None else extensions
        self.enable_error: Exception | None = None
        self.can_sign = True
        self.sign_errors: list[Exception] = []
        self.instructions: list[TransferInstruction] = []

    async def enable(self, app_name: str) -> list[str]:
        if self.enable_error is not None:
            raise self.enable_error
        return self.extensions

    async def list_accounts(self) -> list[Account]:
        if not self.extensions:
            raise BridgeError("Wallet bridge not enabled")
        return self.accounts

    async def get_signer(self, address: str) -> Signer | None:
        if not self.can_sign:
            return None
        return FakeSigner(address, self)


async def wait_until(predicate: Callable[[], object], timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def eventually():
    return wait_until


@pytest.fixture
def service_address() -> str:
    return ss58_encode(b"\x02" * 32)


@pytest.fixture
def config(service_address) -> RegistrarConfig:
    return RegistrarConfig(
        node_url="ws://node.test",
        service_address=service_address,
        registration_fee=Decimal("3"),
        reconnect_delay=0,
        api_url="http://api.test",
    )


@pytest.fixture
def account() -> Account:
    return Account(address=ss58_encode(b"\x01" * 32), display_name="alice")


@pytest.fixture
def backend(account) -> FakeBackend:
    return FakeBackend(balances={account.address: FEE_MINOR})


@pytest.fixture
def bridge(account) -> FakeBridge:
    return FakeBridge([account])


@pytest.fixture
def fee_minor() -> int:
    return FEE_MINOR


@pytest.fixture
def make_backend() -> Callable[..., FakeBackend]:
    return FakeBackend


@pytest.fixture
def make_bridge() -> Callable[..., FakeBridge]:
    return FakeBridge
