"""
Block+ registration endpoint client.
"""

from __future__ import annotations

from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel, ValidationError

from registrar.errors import RegistrationApiError


class RegistrationResult(BaseModel):
    token: str
    wallet: str


class RegistrationClient:
    """
    Client for `POST /auth/register`.

    Called once per successful fee payment; failures are surfaced as-is and
    never retried.
    """

    def __init__(
        self,
        api_url: str = "http://localhost:5000",
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def register(
        self, wallet: str, username: str, password: str, transaction_hash: str
    ) -> RegistrationResult:
        payload = {
            "wallet": wallet,
            "username": username,
            "password": password,
            "transactionHash": transaction_hash,
        }
        url = f"{self.api_url}/auth/register"
        logger.info(f"Registering '{username}' for {wallet}")
        try:
            response = await self.client.post(url, json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Registration request failed: {e}")
            raise RegistrationApiError(f"Registration request failed: {e}") from e

        body = self._json(response)
        if response.is_error:
            message = body.get("message") if isinstance(body, dict) else None
            raise RegistrationApiError(
                message or f"Registration failed (HTTP {response.status_code})",
                status_code=response.status_code,
            )

        try:
            result = RegistrationResult.model_validate(body)
        except ValidationError as e:
            raise RegistrationApiError(
                "Registration response missing token", status_code=response.status_code
            ) from e
        logger.info(f"Registered {result.wallet}")
        return result

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return {}

    async def close(self) -> None:
        await self.client.aclose()
