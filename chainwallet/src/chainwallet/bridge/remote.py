"""
HTTP wallet bridge.

Talks to a local wallet daemon that holds the keys and prompts the user:

    POST /enable            {"origin": app}            -> {"extensions": [{"name": ...}]}
    GET  /accounts                                     -> {"accounts": [{"address", "name"}]}
    POST /sign              {"address", "call", "context"} -> {"extrinsic": "0x..."}

A refused prompt is answered with a 4xx and {"error": "Cancelled"}.
"""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

import httpx
from chaincore.models import Account, SigningContext, TransferInstruction
from loguru import logger

from chainwallet.bridge.base import BridgeError, Signer, SignerRejected, WalletBridge


class RemoteSigner(Signer):
    def __init__(self, bridge: RemoteWalletBridge, address: str) -> None:
        self.bridge = bridge
        self.address = address

    async def sign(self, instruction: TransferInstruction, context: SigningContext) -> str:
        payload = {
            "address": self.address,
            "call": instruction.as_call(),
            "context": asdict(context),
        }
        logger.info(
            f"Requesting signature from wallet for {instruction.pallet}.{instruction.call} "
            f"({instruction.amount} to {instruction.dest})"
        )
        data = await self.bridge._call("POST", "sign", payload)
        extrinsic = data.get("extrinsic")
        if not isinstance(extrinsic, str) or not extrinsic.startswith("0x"):
            raise BridgeError("Wallet returned no signed extrinsic")
        return extrinsic


class RemoteWalletBridge(WalletBridge):
    def __init__(
        self,
        wallet_url: str = "http://127.0.0.1:8765",
        timeout: float = 120.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        # Signing waits on a human, hence the long default timeout
        self.wallet_url = wallet_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self._enabled = False
        self._accounts: dict[str, Account] = {}

    async def _call(self, method: str, endpoint: str, data: dict[str, Any] | None = None) -> Any:
        url = f"{self.wallet_url}/{endpoint}"
        try:
            if method == "GET":
                response = await self.client.get(url)
            elif method == "POST":
                response = await self.client.post(url, json=data)
            else:
                raise ValueError(f"Unsupported HTTP method: {method}")
        except httpx.HTTPError as e:
            logger.error(f"Wallet bridge call failed: {endpoint} - {e}")
            raise BridgeError(f"Wallet bridge unreachable: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.is_client_error:
            error = body.get("error") if isinstance(body, dict) else None
            if error and "cancel" in str(error).lower():
                raise SignerRejected("Cancelled by user")
            raise BridgeError(f"Wallet bridge rejected {endpoint}: {error or response.status_code}")
        if response.is_error:
            raise BridgeError(f"Wallet bridge error on {endpoint}: HTTP {response.status_code}")
        return body

    async def enable(self, app_name: str) -> list[str]:
        data = await self._call("POST", "enable", {"origin": app_name})
        names = [ext.get("name", "unknown") for ext in data.get("extensions", [])]
        self._enabled = bool(names)
        return names

    async def list_accounts(self) -> list[Account]:
        if not self._enabled:
            raise BridgeError("Wallet bridge not enabled")
        data = await self._call("GET", "accounts")
        accounts = [
            Account(address=entry["address"], display_name=entry.get("name", ""))
            for entry in data.get("accounts", [])
        ]
        self._accounts = {account.address: account for account in accounts}
        return accounts

    async def get_signer(self, address: str) -> Signer | None:
        if not self._enabled or address not in self._accounts:
            return None
        return RemoteSigner(self, address)

    async def close(self) -> None:
        await self.client.aclose()
