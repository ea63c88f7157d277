"""CLI commands for mcplink.

Top-level commands call and ping talk to a tool server through
TransportClient; the config group inspects the effective settings.
"""

import asyncio
import json
from pathlib import Path
from typing import Any

import typer
from rich.console import Console

from mcplink import __logo__, __version__
from mcplink.cli.shared.logging_utils import configure_cli_logging
from mcplink.config.access import get_config
from mcplink.config.loader import get_config_path
from mcplink.config.schema import TransportConfig
from mcplink.transport import TransportClient
from mcplink.utils.exceptions import McpLinkError

app = typer.Typer(
    name="mcplink",
    help=f"{__logo__} mcplink - call tools on a local MCP server over stdio",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Inspect mcplink configuration")
app.add_typer(config_app, name="config")

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} mcplink v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """mcplink - stdio JSON-RPC tool client."""
    pass


def _resolve_config(
    server: str | None,
    server_args: list[str] | None,
    config_path: Path | None,
    timeout: float | None,
) -> TransportConfig:
    overrides = {
        "server_path": server,
        "server_args": server_args or None,
        "request_timeout": timeout,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    try:
        config = get_config(config_path=config_path)
        if overrides:
            config = TransportConfig(**{**config.model_dump(), **overrides})
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(2)
    if not config.server_path:
        console.print(
            f"[red]No server configured.[/red] Pass --server or set serverPath in {config_path or get_config_path()}"
        )
        raise typer.Exit(2)
    return config


def _run(coro: Any) -> Any:
    """Run a client coroutine; fatal transport errors end the command with exit code 2."""
    try:
        return asyncio.run(coro)
    except McpLinkError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise typer.Exit(2)


@app.command()
def call(
    tool: str = typer.Argument(..., help="Tool name, e.g. describe_schema"),
    args: str = typer.Option("{}", "--args", "-a", help="Tool arguments as a JSON object"),
    server: str = typer.Option(None, "--server", "-s", help="Path to the MCP server executable"),
    server_arg: list[str] = typer.Option(None, "--arg", help="Extra argument for the server (repeatable)"),
    timeout: float = typer.Option(None, "--timeout", "-t", help="Seconds to wait for the response"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file path"),
    logs: bool = typer.Option(False, "--logs/--no-logs", help="Show mcplink runtime logs"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Print every frame sent and received"),
):
    """Invoke one tool and print its result as JSON."""
    configure_cli_logging("call", logs=logs, debug=debug)
    try:
        arguments = json.loads(args)
    except json.JSONDecodeError as e:
        console.print(f"[red]--args is not valid JSON:[/red] {e}")
        raise typer.Exit(2)
    if not isinstance(arguments, dict):
        console.print("[red]--args must be a JSON object[/red]")
        raise typer.Exit(2)
    config = _resolve_config(server, server_arg, config_path, timeout)

    async def run_once():
        async with TransportClient(config=config) as client:
            return await client.call_tool(tool, arguments)

    outcome = _run(run_once())
    if not outcome.success:
        console.print(f"[red]✗[/red] {outcome.error_message}")
        raise typer.Exit(1)
    console.print(json.dumps(outcome.data, indent=2, ensure_ascii=False), markup=False, highlight=False)


@app.command()
def ping(
    server: str = typer.Option(None, "--server", "-s", help="Path to the MCP server executable"),
    server_arg: list[str] = typer.Option(None, "--arg", help="Extra argument for the server (repeatable)"),
    timeout: float = typer.Option(None, "--timeout", "-t", help="Seconds to wait for the response"),
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file path"),
    logs: bool = typer.Option(False, "--logs/--no-logs", help="Show mcplink runtime logs"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Print every frame sent and received"),
):
    """Check that the server starts and answers the ping tool."""
    configure_cli_logging("ping", logs=logs, debug=debug)
    config = _resolve_config(server, server_arg, config_path, timeout)

    async def run_once():
        async with TransportClient(config=config) as client:
            return await client.ping()

    if _run(run_once()):
        console.print("[green]✓[/green] ok")
        return
    console.print("[red]✗[/red] unreachable")
    raise typer.Exit(1)


@config_app.command("show")
def config_show(
    config_path: Path = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Print the effective configuration (file values win over MCPLINK_* variables)."""
    try:
        config = get_config(config_path=config_path)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(2)
    console.print(json.dumps(config.model_dump(), indent=2, ensure_ascii=False), markup=False, highlight=False)


if __name__ == "__main__":
    app()
