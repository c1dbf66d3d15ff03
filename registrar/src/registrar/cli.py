"""
Command-line interface for Block+ registration.
"""

from __future__ import annotations

import asyncio
import sys
from typing import Annotated

import typer
from chainwallet.backends import SubstrateBackend
from chainwallet.bridge import RemoteWalletBridge
from loguru import logger
from pydantic import ValidationError

from registrar.api import RegistrationClient
from registrar.config import RegistrarConfig, get_settings
from registrar.errors import Recovery, RegistrationApiError
from registrar.gate import RegistrationGate, SubmissionLocked
from registrar.models import RegistrationSnapshot, RegistrationStatus

app = typer.Typer(
    name="blockplus-register",
    help="Block+ registration - pay the CESS registration fee and create an account",
    add_completion=False,
)


def setup_logging(level: str) -> None:
    """Configure loguru logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )


def build_config(
    node_url: str | None, wallet_url: str | None, api_url: str | None
) -> RegistrarConfig:
    """Settings from the environment / .env, overridden by explicit options."""
    config = get_settings().to_config()
    overrides = {
        key: value
        for key, value in (("node_url", node_url), ("wallet_url", wallet_url), ("api_url", api_url))
        if value
    }
    return config.model_copy(update=overrides) if overrides else config


NodeOption = Annotated[
    str | None, typer.Option("--node-url", envvar="NODE_URL", help="Ledger node WebSocket URL")
]
WalletOption = Annotated[
    str | None, typer.Option("--wallet-url", envvar="WALLET_URL", help="Wallet daemon URL")
]
LogOption = Annotated[str, typer.Option("--log-level", "-l", help="Log level")]


@app.command("chain-info")
def chain_info(node_url: NodeOption = None, log_level: LogOption = "INFO") -> None:
    """Connect to the node and print the native token properties."""
    setup_logging(log_level)
    config = build_config(node_url, None, None)
    asyncio.run(_chain_info(config))


async def _chain_info(config: RegistrarConfig) -> None:
    backend = SubstrateBackend(
        config.node_url,
        timeout=config.rpc_timeout,
        default_decimals=config.default_decimals,
        default_symbol=config.default_symbol,
    )
    try:
        await backend.wait_ready()
        properties = await backend.chain_properties()
    except Exception as e:
        logger.error(f"Failed to query {config.node_url}: {e}")
        raise typer.Exit(1)
    finally:
        await backend.close()

    print(f"Node:     {config.node_url}")
    print(f"Symbol:   {properties.symbol}")
    print(f"Decimals: {properties.decimals}")
    print(f"Fee:      {config.registration_fee} {properties.symbol}")


@app.command()
def accounts(wallet_url: WalletOption = None, log_level: LogOption = "INFO") -> None:
    """List the accounts the wallet exposes to this app."""
    setup_logging(log_level)
    config = build_config(None, wallet_url, None)
    asyncio.run(_accounts(config))


async def _accounts(config: RegistrarConfig) -> None:
    bridge = RemoteWalletBridge(config.wallet_url)
    gate = RegistrationGate(config, bridge)
    try:
        found = await gate.discover()
        if not found:
            logger.error(gate.snapshot.message)
            raise typer.Exit(1)
        for account in found:
            print(f"{account.address}  {account.display_name}")
    finally:
        await gate.teardown()
        await bridge.close()


@app.command()
def register(
    account: Annotated[str, typer.Option("--account", "-a", help="Address paying the fee")],
    username: Annotated[str, typer.Option("--username", "-u", help="Block+ username")],
    password: Annotated[
        str | None,
        typer.Option("--password", "-p", envvar="BLOCKPLUS_PASSWORD", help="Block+ password"),
    ] = None,
    accept_terms: Annotated[
        bool, typer.Option("--accept-terms", help="Accept the Block+ terms and conditions")
    ] = False,
    node_url: NodeOption = None,
    wallet_url: WalletOption = None,
    api_url: Annotated[
        str | None, typer.Option("--api-url", envvar="API_URL", help="Block+ API base URL")
    ] = None,
    log_level: LogOption = "INFO",
) -> None:
    """Pay the registration fee from ACCOUNT and create a Block+ account."""
    setup_logging(log_level)
    if not accept_terms:
        accept_terms = typer.confirm("Do you accept the Block+ terms and conditions?")
    if password is None:
        password = typer.prompt("Password", hide_input=True, confirmation_prompt=True)

    config = build_config(node_url, wallet_url, api_url)
    asyncio.run(_register(config, account, username, password, accept_terms))


def _print_status(snapshot: RegistrationSnapshot) -> None:
    if snapshot.message:
        logger.info(f"[{snapshot.status.value}] {snapshot.message}")


def _log_form_errors(error: ValidationError) -> None:
    for err in error.errors():
        logger.error(err["msg"])


async def _register(
    config: RegistrarConfig, address: str, username: str, password: str, accept_terms: bool
) -> None:
    bridge = RemoteWalletBridge(config.wallet_url)
    api = RegistrationClient(config.api_url)
    gate = RegistrationGate(config, bridge, api=api)
    gate.subscribe(_print_status)

    try:
        try:
            gate.validate_form(username, password, accept_terms)
        except ValidationError as e:
            _log_form_errors(e)
            raise typer.Exit(1)

        if not await gate.start():
            raise typer.Exit(1)

        found = await gate.discover()
        selected = next((a for a in found if a.address == address), None)
        if selected is None:
            if found:
                logger.error(f"Account {address} is not exposed by the wallet")
            raise typer.Exit(1)

        if not await gate.select(selected):
            snapshot = gate.snapshot
            error = snapshot.error
            if error is not None and error.recovery == Recovery.RETRY_PAYMENT:
                logger.info("Payment can be retried with the same command")
            raise typer.Exit(1)

        assert gate.snapshot.status == RegistrationStatus.SUCCESS
        try:
            result = await gate.submit_registration(username, password, accept_terms)
        except ValidationError as e:
            _log_form_errors(e)
            raise typer.Exit(1)
        except (SubmissionLocked, RegistrationApiError) as e:
            logger.error(f"Registration failed: {e}")
            raise typer.Exit(1)

        print(f"Transaction: {gate.snapshot.transaction_hash}")
        print(f"Wallet:      {result.wallet}")
        print(f"Token:       {result.token}")
    finally:
        await gate.teardown()
        await api.close()
        await bridge.close()


def main() -> None:
    app()


if __name__ == "__main__":
    main()
