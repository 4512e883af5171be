"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from adapters.http_client import build_async_client
from core.config import AppSettings, get_user_env_file, write_user_env_vars

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


async def _check_http(url: str, settings: AppSettings) -> tuple[bool, str]:
    try:
        async with build_async_client(settings) as client:
            response = await client.get(url)
        return True, f"HTTP {response.status_code}"
    except Exception as exc:
        return False, str(exc) or exc.__class__.__name__


@app.command()
def run() -> None:
    """Show the effective configuration and check the proxy fallback."""

    settings = AppSettings()

    table = Table(title="hostdiff doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    table.add_row("Timeout", "OK", f"{settings.http_timeout_seconds:g}s per request")
    table.add_row("Execution mode", "OK", settings.execution_mode.label())
    table.add_row("TLS verification", "OK" if settings.verify_tls else "OFF", "")
    table.add_row("User config", "OK", str(get_user_env_file()))

    if settings.proxy_fallback:
        ok_proxy, detail = asyncio.run(_check_http(settings.proxy_url, settings))
        table.add_row("Proxy fallback", "OK" if ok_proxy else "FAIL", f"{settings.proxy_url} -> {detail}")
    else:
        table.add_row("Proxy fallback", "OFF", "Failed requests are reported without retry")

    _console.print(table)


@app.command(name="set-proxy")
def set_proxy(
    enabled: bool = typer.Option(True, "--enable/--disable", help="Turn the proxy fallback on or off."),
    url: str = typer.Option("", "--url", help="Proxy address (defaults to the current setting)."),
) -> None:
    """Persist proxy fallback settings in the user config .env."""

    settings = AppSettings()
    proxy_url = url.strip() or settings.proxy_url
    if not proxy_url.startswith(("http://", "https://")):
        raise typer.BadParameter("proxy URL must start with http:// or https://")

    env_path = write_user_env_vars(
        {
            "HOSTDIFF_PROXY_FALLBACK": "true" if enabled else "false",
            "HOSTDIFF_PROXY_URL": proxy_url,
        }
    )
    _console.print(f"[green]Saved proxy config to:[/green] {env_path}")
