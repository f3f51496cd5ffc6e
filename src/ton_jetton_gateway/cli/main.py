"""CLI for ton-jetton-gateway."""

import json
import logging
from decimal import Decimal, InvalidOperation
from enum import StrEnum
from typing import Any, NoReturn

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table
from rich.traceback import install

from ton_jetton_gateway.core.models import GatewaySettings
from ton_jetton_gateway.core.service import JettonService
from ton_jetton_gateway.core.units import amount_to_units, units_to_amount
from ton_jetton_gateway.data import get_network_config, get_supported_networks, load_settings
from ton_jetton_gateway.exceptions import GatewayError
from ton_jetton_gateway.rpc import ToncenterTransport

# Install rich traceback handler
install(show_locals=False)

app = typer.Typer(
    name="ton-jetton-gateway",
    help="Look up TON jetton wallets and balances through a cached, rate-limited RPC layer",
    add_completion=False,
)

console = Console()


class OutputFormat(StrEnum):
    """Output format options."""

    TABLE = "table"
    JSON = "json"


@app.callback()
def main(
    ctx: typer.Context,
    network: str | None = typer.Option(None, "--network", "-n", help="Network preset (default: TON_NETWORK or mainnet)"),
    endpoint: str | None = typer.Option(None, "--endpoint", help="JSON-RPC endpoint URL"),
    api_key: str | None = typer.Option(None, "--api-key", help="toncenter API key", envvar="TON_API_KEY"),
    master: str | None = typer.Option(None, "--master", "-m", help="Jetton master address"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Enable debug output"),
) -> None:
    """Global options shared by every command."""
    if debug:
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    ctx.obj = {
        "network": network,
        "overrides": {"endpoint": endpoint, "api_key": api_key, "master_address": master},
        "debug": debug,
    }


def _load_settings(ctx: typer.Context) -> GatewaySettings:
    """
    Load settings from the global options.

    Raises
    ------
    typer.Exit
        If the configuration is invalid

    """
    options = ctx.obj or {}
    try:
        return load_settings(options.get("network"), options.get("overrides"))
    except GatewayError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e}")
        raise typer.Exit(code=1) from e


def _create_service(settings: GatewaySettings) -> JettonService:
    transport = ToncenterTransport(
        endpoint=settings.endpoint,
        api_key=settings.api_key,
        timeout=settings.request_timeout,
    )
    return JettonService.from_settings(settings, transport)


def _close_service(service: JettonService) -> None:
    close = getattr(service.transport, "close", None)
    if close is not None:
        close()


def _fail(ctx: typer.Context, error: Exception) -> NoReturn:
    console.print(f"[bold red]Error:[/bold red] {error}")
    if (ctx.obj or {}).get("debug"):
        # Rich traceback will automatically handle this
        raise error
    raise typer.Exit(1) from error


def _output_json(data: Any) -> None:
    """Output data as JSON."""

    def decimal_default(obj):
        if isinstance(obj, Decimal):
            return str(obj)
        raise TypeError

    console.print(json.dumps(data, indent=2, default=decimal_default), soft_wrap=True)


@app.command()
def balance(
    ctx: typer.Context,
    owners: list[str] = typer.Argument(..., help="Owner wallet address(es)"),
    strict: bool = typer.Option(False, "--strict", help="Fail instead of reporting 0 when a lookup fails"),
    format: OutputFormat = typer.Option(OutputFormat.TABLE, "--format", "-f", help="Output format"),
) -> None:
    """
    Show jetton balances for one or more owners.

    Examples:

        # Balance of one wallet
        ton-jetton-gateway balance EQD...

        # Several wallets on testnet, as JSON
        ton-jetton-gateway --network testnet --master kQ... balance EQA... EQB... --format json
    """
    settings = _load_settings(ctx)
    service = _create_service(settings)
    symbol = settings.token.symbol

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task(f"Fetching {symbol} balances...", total=None)
            if strict:
                balances = {owner: service.fetch_display_balance(owner) for owner in dict.fromkeys(owners)}
            else:
                balances = service.get_display_balances(owners)
    except GatewayError as e:
        _fail(ctx, e)
    finally:
        _close_service(service)

    if format == OutputFormat.JSON:
        _output_json({"network": settings.network, "token": symbol, "balances": balances})
        return

    table = Table(title=f"{symbol} balances ({settings.network})", show_header=True, header_style="bold magenta")
    table.add_column("Owner", style="cyan")
    table.add_column("Balance", style="bold green", justify="right")

    for owner, amount in balances.items():
        table.add_row(owner, f"{amount:,.{settings.token.decimals}f}")

    console.print(table)


@app.command("wallet-address")
def wallet_address(
    ctx: typer.Context,
    owner: str = typer.Argument(..., help="Owner wallet address"),
    format: OutputFormat = typer.Option(OutputFormat.TABLE, "--format", "-f", help="Output format"),
) -> None:
    """Show the jetton wallet address derived for an owner."""
    settings = _load_settings(ctx)
    service = _create_service(settings)
    master = settings.token.master_address

    try:
        address = service.get_jetton_wallet_address(master, owner)
    except GatewayError as e:
        _fail(ctx, e)
    finally:
        _close_service(service)

    if format == OutputFormat.JSON:
        _output_json({"master": master, "owner": owner, "wallet": address})
    else:
        console.print(f"[bold cyan]{settings.token.symbol} wallet for {owner}:[/bold cyan] {address}")


@app.command("raw-balance")
def raw_balance(
    ctx: typer.Context,
    wallet: str = typer.Argument(..., help="Jetton wallet address"),
) -> None:
    """Show the raw balance of a jetton wallet in base units."""
    settings = _load_settings(ctx)
    service = _create_service(settings)

    try:
        units = service.get_raw_balance(wallet)
    except GatewayError as e:
        _fail(ctx, e)
    finally:
        _close_service(service)

    console.print(str(units))


def _resolve_decimals(ctx: typer.Context, decimals: int | None) -> int:
    """Explicit --decimals, else the configured token's precision."""
    if decimals is not None:
        return decimals
    return _load_settings(ctx).token.decimals


@app.command("to-units")
def to_units(
    ctx: typer.Context,
    amount: str = typer.Argument(..., help="Amount in whole tokens"),
    decimals: int | None = typer.Option(None, "--decimals", help="Token decimal precision (default: configured token)"),
) -> None:
    """Convert a token amount to base units (rounded down)."""
    decimals = _resolve_decimals(ctx, decimals)
    try:
        console.print(str(amount_to_units(Decimal(amount), decimals)))
    except (InvalidOperation, ValueError) as e:
        console.print(f"[bold red]Invalid amount {amount!r}:[/bold red] {e}")
        raise typer.Exit(1) from e


@app.command("to-amount")
def to_amount(
    ctx: typer.Context,
    units: int = typer.Argument(..., help="Amount in base units"),
    decimals: int | None = typer.Option(None, "--decimals", help="Token decimal precision (default: configured token)"),
) -> None:
    """Convert base units to a token amount."""
    decimals = _resolve_decimals(ctx, decimals)
    try:
        console.print(str(units_to_amount(units, decimals)))
    except ValueError as e:
        console.print(f"[bold red]Invalid units {units}:[/bold red] {e}")
        raise typer.Exit(1) from e


@app.command()
def networks() -> None:
    """List network presets."""
    table = Table(title="Network Presets", show_header=True, header_style="bold magenta")
    table.add_column("Network", style="cyan")
    table.add_column("Endpoint", style="green")
    table.add_column("Token", style="yellow")
    table.add_column("Jetton Master", style="white")

    for name in get_supported_networks():
        preset = get_network_config(name)
        token = preset["token"]
        table.add_row(name, preset["endpoint"], token.get("symbol", ""), token.get("master_address") or "-")

    console.print(table)


if __name__ == "__main__":
    app()
