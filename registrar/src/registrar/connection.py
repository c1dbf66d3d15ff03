"""
Ledger node connection lifecycle.

The ConnectionManager is the only owner of the live backend. Everything
else borrows it through `current_handle()`, which returns None whenever the
session is not ready.
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable

from chaincore.models import ChainProperties
from chainwallet.backends import LedgerBackend, SubstrateBackend
from loguru import logger

from registrar.config import RegistrarConfig
from registrar.errors import ConnectionFailed
from registrar.events import (
    ConnectionFailedEvent,
    ConnectionLost,
    ConnectionProgress,
    ConnectionReady,
)
from registrar.models import ConnectionState, ConnectionStatus

BackendFactory = Callable[[], LedgerBackend]
ConnectionEvent = ConnectionProgress | ConnectionReady | ConnectionLost | ConnectionFailedEvent
ConnectionListener = Callable[[ConnectionEvent], None]


class ConnectionManager:
    def __init__(
        self,
        config: RegistrarConfig,
        backend_factory: BackendFactory | None = None,
        listener: ConnectionListener | None = None,
    ) -> None:
        self.config = config
        self.backend_factory = backend_factory or self._default_backend
        self.listener = listener
        self.state = ConnectionState()
        self._backend: LedgerBackend | None = None
        self._properties: ChainProperties | None = None
        self._connect_task: asyncio.Task[tuple[LedgerBackend, ChainProperties]] | None = None
        self._reconnect_task: asyncio.Task[None] | None = None
        self._torn_down = False

    def _default_backend(self) -> LedgerBackend:
        return SubstrateBackend(
            self.config.node_url,
            timeout=self.config.rpc_timeout,
            default_decimals=self.config.default_decimals,
            default_symbol=self.config.default_symbol,
        )

    @property
    def handle(self) -> LedgerBackend | None:
        if self._backend is not None and self._backend.is_ready():
            return self._backend
        return None

    def current_handle(self) -> LedgerBackend | None:
        """Non-owning handle provider for consumers."""
        return self.handle

    @property
    def properties(self) -> ChainProperties | None:
        return self._properties

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    def _emit(self, event: ConnectionEvent) -> None:
        if isinstance(event, ConnectionProgress | ConnectionLost):
            self.state.last_message = event.message
        if self.listener is not None:
            self.listener(event)

    async def connect(self) -> tuple[LedgerBackend, ChainProperties]:
        """
        Open a session and wait until the node is ready.

        Returns:
            The live backend and the chain's token properties

        Raises:
            ConnectionFailed: After `max_connect_attempts` failed attempts, or
                if the manager is torn down while connecting
        """
        if self._torn_down:
            raise ConnectionFailed("Connection manager has been torn down")
        handle = self.handle
        if handle is not None and self._properties is not None:
            return handle, self._properties
        if self._connect_task is not None and not self._connect_task.done():
            return await self._connect_task

        self._cancel_reconnect()
        task = asyncio.create_task(self._connect_bounded())
        self._connect_task = task
        try:
            return await task
        except asyncio.CancelledError:
            if self._torn_down and task.cancelled():
                raise ConnectionFailed("Connection cancelled") from None
            task.cancel()
            raise
        finally:
            if self._connect_task is task:
                self._connect_task = None

    async def _connect_bounded(self) -> tuple[LedgerBackend, ChainProperties]:
        max_attempts = self.config.max_connect_attempts
        for attempt in range(1, max_attempts + 1):
            self.state.status = ConnectionStatus.CONNECTING
            self.state.attempt_count = attempt
            if attempt == 1:
                self._emit(ConnectionProgress("Connecting to CESS network..."))

            try:
                backend, properties = await self._open_session()
            except Exception as e:
                logger.warning(
                    f"Connection attempt {attempt}/{max_attempts} to "
                    f"{self.config.node_url} failed: {e}"
                )
                if attempt < max_attempts:
                    self._emit(
                        ConnectionProgress(
                            f"Connection attempt {attempt}/{max_attempts} failed. Retrying..."
                        )
                    )
                    await asyncio.sleep(self.config.reconnect_delay)
                    continue

                self.state.status = ConnectionStatus.ERROR
                error = ConnectionFailed(
                    f"Failed to connect to CESS network after {max_attempts} attempts"
                )
                self.state.last_message = error.message
                logger.error(f"{error.message} ({self.config.node_url})")
                self._emit(ConnectionFailedEvent(error.classified()))
                raise error from e

            self._install(backend, properties)
            return backend, properties

        raise AssertionError("unreachable")

    async def _open_session(self) -> tuple[LedgerBackend, ChainProperties]:
        backend = self.backend_factory()
        backend.on_disconnect = lambda: self._handle_transport_loss(backend, None)
        backend.on_error = lambda error: self._handle_transport_loss(backend, error)
        try:
            await backend.wait_ready()
            properties = await backend.chain_properties()
        except BaseException:
            backend.on_disconnect = None
            backend.on_error = None
            await backend.close()
            raise
        return backend, properties

    def _install(self, backend: LedgerBackend, properties: ChainProperties) -> None:
        self._backend = backend
        self._properties = properties
        self.state.status = ConnectionStatus.CONNECTED
        self.state.attempt_count = 0
        self.state.last_message = "Connected to CESS network"
        logger.info(f"Connected to {self.config.node_url} ({properties.symbol})")
        self._emit(ConnectionReady(properties))

    def _handle_transport_loss(self, backend: LedgerBackend, error: Exception | None) -> None:
        if self._torn_down or backend is not self._backend:
            return
        self._backend = None
        if error is None:
            self.state.status = ConnectionStatus.DISCONNECTED
            logger.warning(f"Disconnected from {self.config.node_url}")
            self._emit(ConnectionLost("Network disconnected. Attempting to reconnect..."))
        else:
            self.state.status = ConnectionStatus.ERROR
            logger.warning(f"Transport error on {self.config.node_url}: {error}")
            self._emit(ConnectionLost("Network error. Attempting to reconnect..."))
        self._schedule_reconnect(backend)

    def _cancel_reconnect(self) -> None:
        if self._reconnect_task is not None and not self._reconnect_task.done():
            self._reconnect_task.cancel()
        self._reconnect_task = None

    def _schedule_reconnect(self, stale: LedgerBackend | None = None) -> None:
        if self._torn_down:
            return
        if self.reconnect_pending:
            logger.debug("Replacing pending reconnect")
        self._cancel_reconnect()
        self._reconnect_task = asyncio.create_task(self._reconnect(stale))
        self._reconnect_task.set_name("reconnect")
        logger.info(f"Scheduled reconnect in {self.config.reconnect_delay}s")

    async def _reconnect(self, stale: LedgerBackend | None) -> None:
        if stale is not None:
            try:
                await stale.close()
            except Exception as e:
                logger.debug(f"Error closing stale session: {e}")

        attempt = 0
        while not self._torn_down:
            await asyncio.sleep(self.config.reconnect_delay)
            attempt += 1
            self.state.status = ConnectionStatus.CONNECTING
            self.state.attempt_count = attempt
            logger.info(f"Reconnecting to {self.config.node_url} (attempt {attempt})...")
            try:
                backend, properties = await self._open_session()
            except Exception as e:
                logger.warning(f"Reconnect attempt {attempt} failed: {e}")
                self._emit(
                    ConnectionProgress(f"Reconnect attempt {attempt} failed. Retrying...")
                )
                continue
            self._install(backend, properties)
            return

    async def teardown(self) -> None:
        """Cancel pending work and close the session. Safe to call repeatedly."""
        self._torn_down = True
        tasks = [t for t in (self._reconnect_task, self._connect_task) if t is not None]
        self._reconnect_task = None
        for task in tasks:
            if not task.done():
                task.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task

        backend, self._backend = self._backend, None
        if backend is not None:
            backend.on_disconnect = None
            backend.on_error = None
            await backend.close()
            logger.info(f"Closed connection to {self.config.node_url}")
        self.state.status = ConnectionStatus.DISCONNECTED
