"""Typer CLI entrypoint."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import typer

from iwdctl.api import Client
from iwdctl.core.config import load_settings
from iwdctl.core.errors import IwdctlError
from iwdctl.core.model import DeviceState, StationState

app = typer.Typer(help="Control the iwd wireless daemon over D-Bus")

_BARS = "▂▄▆█"


def format_status(state: DeviceState) -> str:
    name = state.name or "<no device>"
    if state.state is StationState.CONNECTED and state.ssid:
        text = f"{name}: connected to {state.ssid}"
    else:
        text = f"{name}: {state.state.value}"
    if state.scanning:
        text += " (scanning)"
    return text


def _report(exc: IwdctlError) -> None:
    typer.echo(f"Error: {exc}", err=True)


async def _open_client(config: Path | None, **kwargs: Any) -> Client:
    loaded = load_settings(config)
    for warning in loaded.warnings:
        typer.echo(f"Warning: {warning}", err=True)
    return await Client.open(settings=loaded.settings, **kwargs)


def _run(ctx: typer.Context, body: Callable[[Client], Awaitable[None]], **client_kwargs: Any) -> None:
    async def _main() -> None:
        client = await _open_client(ctx.obj, **client_kwargs)
        try:
            await body(client)
        finally:
            await client.close()

    try:
        asyncio.run(_main())
    except IwdctlError as exc:
        _report(exc)
        raise typer.Exit(code=1) from None


@app.callback()
def main(
    ctx: typer.Context,
    config: Path | None = typer.Option(None, "--config", help="Path to config.yaml"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr"),
) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = config


@app.command("status")
def status(ctx: typer.Context) -> None:
    """Show the managed device and its connection state."""

    async def body(client: Client) -> None:
        state = await client.refresh()
        typer.echo(format_status(state))

    _run(ctx, body)


@app.command("networks")
def list_networks(ctx: typer.Context) -> None:
    """List networks in range, best signal first."""

    async def body(client: Client) -> None:
        await client.refresh()
        networks = await client.ordered_networks()
        if not networks:
            typer.echo("No networks in range")
            return
        for network in networks:
            marker = "*" if network.connected else ("+" if network.known else " ")
            bars = _BARS[: network.strength]
            typer.echo(
                f"{marker} {network.ssid:<32} {network.security:<6} "
                f"{network.signal_dbm:>4.0f} dBm {bars}"
            )

    _run(ctx, body)


@app.command("known")
def list_known(ctx: typer.Context) -> None:
    """List networks iwd has credentials for."""

    async def body(client: Client) -> None:
        await client.refresh()
        known = client.known_networks()
        if not known:
            typer.echo("No known networks")
            return
        for network in known:
            flags = []
            if network.hidden:
                flags.append("hidden")
            if not network.autoconnect:
                flags.append("no-autoconnect")
            suffix = f" [{', '.join(flags)}]" if flags else ""
            last = network.last_connected or "never"
            typer.echo(f"{network.name:<32} {network.security:<6} last: {last}{suffix}")

    _run(ctx, body)


@app.command("scan")
def scan(ctx: typer.Context) -> None:
    """Ask iwd to scan for networks."""

    async def body(client: Client) -> None:
        await client.scan()
        typer.echo("Scan started")

    _run(ctx, body)


@app.command("connect")
def connect(ctx: typer.Context, network: str = typer.Argument(..., help="SSID or object path")) -> None:
    """Connect to a network, prompting for a passphrase if iwd asks for one."""

    async def body(client: Client) -> None:
        await client.start()
        outcome = await client.connect(network)
        if not outcome.succeeded:
            typer.echo(f"Error: {outcome.ssid}: {outcome.message}", err=True)
            raise typer.Exit(code=1)
        typer.echo(f"Connected to {outcome.ssid}")

    _run(ctx, body)


@app.command("disconnect")
def disconnect(ctx: typer.Context) -> None:
    """Disconnect from the current network."""

    async def body(client: Client) -> None:
        await client.disconnect()
        typer.echo("Disconnected")

    _run(ctx, body)


@app.command("forget")
def forget(ctx: typer.Context, network: str = typer.Argument(..., help="SSID or object path")) -> None:
    """Forget the stored credentials of the connected network."""

    async def body(client: Client) -> None:
        await client.refresh()
        await client.forget(network)
        typer.echo(f"Forgot {network}")

    _run(ctx, body)


@app.command("watch")
def watch(ctx: typer.Context) -> None:
    """Print a status line every time the connection state changes."""

    async def body(client: Client) -> None:
        client.add_status_observer(lambda state: typer.echo(format_status(state)))
        await client.start()
        await asyncio.Event().wait()

    try:
        _run(ctx, body, on_error=_report)
    except KeyboardInterrupt:
        pass


def run() -> None:
    app()


if __name__ == "__main__":
    run()
