"""
Base ledger backend interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable

from chaincore.models import (
    ChainProperties,
    ModuleErrorInfo,
    SigningContext,
    TransactionUpdate,
)


class Subscription(ABC):
    """A live status stream that can be torn down."""

    @abstractmethod
    async def unsubscribe(self) -> None:
        """Stop deliveries. Must be idempotent."""


class LedgerBackend(ABC):
    """
    Abstract ledger node interface.

    A backend is one session with one node. It is created and closed by the
    connection manager; consumers only ever borrow it.
    """

    on_disconnect: Callable[[], None] | None = None
    on_error: Callable[[Exception], None] | None = None

    @abstractmethod
    async def wait_ready(self) -> None:
        """Connect and load everything needed to serve queries (metadata, properties)."""

    @abstractmethod
    def is_ready(self) -> bool:
        """True while the session is open and initialised"""

    @abstractmethod
    async def chain_properties(self) -> ChainProperties:
        """Native token decimals and symbol"""

    @abstractmethod
    async def free_balance(self, address: str) -> int:
        """Free balance of an account in minor units"""

    @abstractmethod
    def supports_call(self, pallet: str, call: str) -> bool:
        """Whether the connected runtime exposes pallet.call"""

    @abstractmethod
    async def signing_context(self, address: str) -> SigningContext:
        """Chain state a signer needs for an extrinsic from `address`"""

    @abstractmethod
    async def submit_and_watch(
        self,
        extrinsic: str,
        on_update: Callable[[TransactionUpdate], None],
        on_error: Callable[[Exception], None],
    ) -> Subscription:
        """
        Submit a signed extrinsic and stream its status.

        `on_update` receives every status in protocol order. `on_error` is
        called at most once if the stream dies before a terminal status
        (transport loss). Nothing is delivered after `unsubscribe()`.
        """

    @abstractmethod
    def find_module_error(self, module_index: int, error_index: int) -> ModuleErrorInfo | None:
        """Resolve a module error against the runtime metadata"""

    async def close(self) -> None:
        """Close backend connection"""
        pass
