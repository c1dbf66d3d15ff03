"""
JSON-RPC 2.0 over WebSocket, with server-push subscriptions.

A single reader task demultiplexes frames: responses resolve the pending
request future with the same id, notifications are routed to the
subscription registered under params.subscription.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
from collections.abc import Callable
from typing import Any

import aiohttp
from loguru import logger

# Upper bound on notifications held for subscriptions still being set up
MAX_EARLY_NOTIFICATIONS = 256


class RpcError(Exception):
    """Error object returned by the node."""

    def __init__(self, code: int | str, message: str, data: Any = None) -> None:
        self.code = code
        self.message = message
        self.data = data
        detail = f": {data}" if data else ""
        super().__init__(f"{code}: {message}{detail}")


class TransportClosedError(ConnectionError):
    """The WebSocket is not open (never connected, closed or disconnected)."""


class RpcSubscription:
    """
    Handle for a server-push subscription.

    Notifications are delivered to `on_result` in arrival order. If the
    transport goes away, `on_close` receives the error once.
    """

    def __init__(
        self,
        client: WebSocketRpcClient,
        subscription_id: str,
        unsubscribe_method: str,
        on_result: Callable[[Any], None],
        on_close: Callable[[Exception], None] | None = None,
    ) -> None:
        self.client = client
        self.subscription_id = subscription_id
        self.unsubscribe_method = unsubscribe_method
        self.on_result = on_result
        self.on_close = on_close
        self.active = True

    def deliver(self, result: Any) -> None:
        if self.active:
            self.on_result(result)

    def close(self, error: Exception) -> None:
        if not self.active:
            return
        self.active = False
        if self.on_close:
            self.on_close(error)

    async def unsubscribe(self) -> None:
        """Stop deliveries locally, then tell the node. Idempotent."""
        if not self.active:
            return
        self.active = False
        self.client._subscriptions.pop(self.subscription_id, None)
        if not self.client.is_connected():
            return
        try:
            await self.client.request(self.unsubscribe_method, [self.subscription_id])
        except (RpcError, TransportClosedError, asyncio.TimeoutError) as e:
            logger.debug(f"Unsubscribe {self.subscription_id} not acknowledged: {e}")


class WebSocketRpcClient:
    """
    WebSocket JSON-RPC client for a Substrate node.

    Lifecycle callbacks:
    - on_disconnect: the socket closed after a successful connect
    - on_error: a transport-level error was observed on the socket
    """

    def __init__(
        self,
        url: str,
        timeout: float = 30.0,
        heartbeat: float | None = 30.0,
        max_message_size: int = 16 * 1024 * 1024,
        on_disconnect: Callable[[], None] | None = None,
        on_error: Callable[[Exception], None] | None = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.heartbeat = heartbeat
        self.max_message_size = max_message_size
        self.on_disconnect = on_disconnect
        self.on_error = on_error

        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._request_id = 0
        self._pending: dict[int, asyncio.Future[Any]] = {}
        self._subscriptions: dict[str, RpcSubscription] = {}
        # Notifications that arrived before their subscribe response
        self._early: dict[str, list[Any]] = {}
        self._subscribing = 0
        self._closing = False

    def is_connected(self) -> bool:
        return self._ws is not None and not self._ws.closed

    async def connect(self) -> None:
        """Open the WebSocket and start the reader task."""
        if self.is_connected():
            return
        self._closing = False
        self._session = aiohttp.ClientSession()
        try:
            self._ws = await asyncio.wait_for(
                self._session.ws_connect(
                    self.url,
                    heartbeat=self.heartbeat,
                    max_msg_size=self.max_message_size,
                ),
                timeout=self.timeout,
            )
        except (aiohttp.ClientError, OSError, asyncio.TimeoutError) as e:
            await self._session.close()
            self._session = None
            raise TransportClosedError(f"Failed to connect to {self.url}: {e}") from e

        logger.debug(f"WebSocket connected to {self.url}")
        self._reader_task = asyncio.create_task(self._read_loop())

    async def close(self) -> None:
        """Close the socket without firing on_disconnect."""
        self._closing = True
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        if self._reader_task is not None and self._reader_task is not asyncio.current_task():
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task
        self._reader_task = None
        self._fail_all(TransportClosedError("Connection closed"))
        if self._session is not None:
            await self._session.close()
            self._session = None
        self._ws = None

    async def request(self, method: str, params: list[Any] | None = None) -> Any:
        """
        Send a request and wait for its response.

        Raises:
            RpcError: The node answered with an error object
            TransportClosedError: The socket is not open or closed while waiting
            asyncio.TimeoutError: No answer within `timeout`
        """
        if not self.is_connected():
            raise TransportClosedError("Not connected")

        assert self._ws is not None
        self._request_id += 1
        request_id = self._request_id
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future

        payload = {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params or []}
        logger.debug(f"RPC -> {method} (id={request_id})")
        try:
            await self._ws.send_str(json.dumps(payload))
            return await asyncio.wait_for(future, timeout=self.timeout)
        except ConnectionResetError as e:
            raise TransportClosedError(f"Connection lost during {method}") from e
        finally:
            self._pending.pop(request_id, None)

    async def subscribe(
        self,
        method: str,
        params: list[Any],
        unsubscribe_method: str,
        on_result: Callable[[Any], None],
        on_close: Callable[[Exception], None] | None = None,
    ) -> RpcSubscription:
        self._subscribing += 1
        try:
            subscription_id = str(await self.request(method, params))
            early = self._early.pop(subscription_id, [])
        finally:
            self._subscribing -= 1
            if not self._subscribing:
                self._early.clear()

        subscription = RpcSubscription(
            self, subscription_id, unsubscribe_method, on_result, on_close
        )
        self._subscriptions[subscription_id] = subscription
        for result in early:
            subscription.deliver(result)
        return subscription

    async def _read_loop(self) -> None:
        assert self._ws is not None
        error: Exception | None = None
        try:
            async for msg in self._ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._handle_frame(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    error = self._ws.exception() or TransportClosedError("WebSocket error")
                    logger.warning(f"WebSocket error from {self.url}: {error}")
                    break
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = e
            logger.warning(f"WebSocket reader failed: {e}")

        lost = TransportClosedError("Connection closed by node (disconnected)")
        self._fail_all(lost)
        if self._closing:
            return
        if error is not None and self.on_error:
            self.on_error(error)
        elif self.on_disconnect:
            self.on_disconnect()

    def _handle_frame(self, data: str) -> None:
        try:
            message = json.loads(data)
        except json.JSONDecodeError:
            logger.warning(f"Discarding malformed frame: {data[:200]!r}")
            return

        if "id" in message and message["id"] is not None:
            future = self._pending.get(message["id"])
            if future is None or future.done():
                return
            if message.get("error"):
                err = message["error"]
                future.set_exception(
                    RpcError(err.get("code", "unknown"), err.get("message", ""), err.get("data"))
                )
            else:
                future.set_result(message.get("result"))
            return

        params = message.get("params") or {}
        subscription_id = params.get("subscription")
        if subscription_id is None:
            return
        subscription_id = str(subscription_id)
        subscription = self._subscriptions.get(subscription_id)
        if subscription is None:
            self._buffer_early(subscription_id, params.get("result"))
            return
        subscription.deliver(params.get("result"))

    def _buffer_early(self, subscription_id: str, result: Any) -> None:
        # Only a subscribe still waiting for its id can claim the frame
        if not self._subscribing:
            logger.debug(f"Dropping notification for unknown subscription {subscription_id}")
            return
        if sum(map(len, self._early.values())) >= MAX_EARLY_NOTIFICATIONS:
            logger.warning(f"Early notification buffer full, dropping {subscription_id}")
            return
        self._early.setdefault(subscription_id, []).append(result)

    def _fail_all(self, error: Exception) -> None:
        for future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()
        subscriptions = list(self._subscriptions.values())
        self._subscriptions.clear()
        self._early.clear()
        for subscription in subscriptions:
            subscription.close(error)
