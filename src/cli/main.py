"""Command line entry point (Typer).

The CLI only wires adapters to the core services and renders results; all
decisions (tier order, projection, auth outcomes) live in `core`.
"""

from __future__ import annotations

import asyncio
from importlib.metadata import PackageNotFoundError, version as package_version
from pathlib import Path
from typing import Optional

import httpx
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from adapters.discovery_sources import BundledSource, FileCacheSource, RemoteSource
from adapters.http_client import build_async_client
from adapters.json_exporter import export_rows_json
from adapters.oauth_transport import BrowserAuthTransport
from adapters.server_store import JsonServerStore
from cli import doctor
from cli.ui_components import build_messages_panel, build_rows_table, build_servers_table, print_banner
from core.config import APP_NAME, AppSettings, write_user_env_vars
from core.domain.messages import decode_system_messages
from core.errors import AuthError, DecodeError, LoadError
from core.logging_config import setup_logging
from core.services.add_server import AddServerFlow
from core.services.auth_orchestrator import AuthOrchestrator
from core.services.discovery_loader import DiscoveryLoader
from core.services.search import SearchHooks, SearchModel

app = typer.Typer(no_args_is_help=True, help="eduVPN server discovery, system messages and authorization.")
settings_app = typer.Typer(no_args_is_help=True, help="Show or change application settings.")
app.add_typer(doctor.app, name="doctor")
app.add_typer(settings_app, name="settings")

_console = Console()


def _store_path(settings: AppSettings) -> Path:
    return settings.data_dir / "servers.json"


async def _run_search(settings: AppSettings, query: str, include_organizations: bool) -> SearchModel:
    cache = FileCacheSource(settings.cache_dir)
    loader = DiscoveryLoader(cache=cache, bundle=BundledSource(), remote=RemoteSource(settings))
    hooks = SearchHooks(
        warning=lambda message: _console.print(f"[yellow]{escape(message)}[/yellow]"),
        server_data_loaded=lambda result: cache.write_all(result.payloads),
    )
    model = SearchModel(
        loader,
        include_organizations=include_organizations,
        preferred_locales=settings.preferred_locales,
        hooks=hooks,
    )
    model.set_search_query(query)
    await model.load()
    return model


def _search_or_exit(settings: AppSettings, query: str, include_organizations: bool) -> SearchModel:
    try:
        return asyncio.run(_run_search(settings, query, include_organizations))
    except LoadError as exc:
        _console.print(f"[red]Could not load the server list:[/red] {escape(str(exc.cause))}")
        raise typer.Exit(code=1) from exc


async def _fetch_text(settings: AppSettings, url: str) -> bytes:
    async with build_async_client(settings) as client:
        response = await client.get(url)
    response.raise_for_status()
    return response.content


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr."),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Also append logs to this file."),
) -> None:
    settings = AppSettings()
    setup_logging("DEBUG" if verbose else settings.log_level, log_file)


@app.command()
def search(
    query: str = typer.Argument("", help="Text to search for; a host name also offers that server."),
    no_orgs: bool = typer.Option(False, "--no-orgs", help="Only show Institute Access servers."),
    as_json: bool = typer.Option(False, "--json", help="Print the rows as JSON."),
) -> None:
    """Search servers and organizations."""

    settings = AppSettings()
    include_organizations = settings.include_organizations and not no_orgs
    model = _search_or_exit(settings, query, include_organizations)

    if as_json:
        typer.echo(export_rows_json(model.rows, settings.preferred_locales), nl=False)
        return
    _console.print(build_rows_table(model.rows, settings.preferred_locales))


@app.command()
def messages(
    source: str = typer.Argument(..., help="File path or URL of a system_messages document."),
    locale: Optional[list[str]] = typer.Option(None, "--locale", "-l", help="Preferred locale (repeatable)."),
) -> None:
    """Show system messages in the preferred language."""

    settings = AppSettings()
    if source.startswith(("http://", "https://")):
        try:
            raw = asyncio.run(_fetch_text(settings, source))
        except httpx.HTTPError as exc:
            _console.print(f"[red]Could not fetch system messages:[/red] {escape(str(exc))}")
            raise typer.Exit(code=1) from exc
    else:
        path = Path(source)
        if not path.is_file():
            raise typer.BadParameter(f"No such file: {path}")
        raw = path.read_bytes()

    try:
        decoded = decode_system_messages(raw)
    except DecodeError as exc:
        _console.print(f"[red]Invalid system messages:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc

    preferred = locale or settings.preferred_locales
    _console.print(build_messages_panel(decoded.display_string(preferred)))


@app.command()
def add(
    query: str = typer.Argument(..., help="Search text or server host name."),
    index: int = typer.Option(0, "--index", "-i", min=0, help="Which matching server to add (0 = first)."),
) -> None:
    """Authorize against a server from the search results and store it."""

    settings = AppSettings()
    model = _search_or_exit(settings, query, settings.include_organizations)
    server_rows = [row for row in model.rows if row.is_server_row]
    if not server_rows:
        _console.print("[yellow]No server matches that search.[/yellow]")
        raise typer.Exit(code=1)
    if index >= len(server_rows):
        raise typer.BadParameter(f"Only {len(server_rows)} matching server(s)")
    row = server_rows[index]

    print_banner(_console)
    _console.print(f"Opening the browser to authorize [magenta]{row.base_url}[/magenta]...")

    store = JsonServerStore(_store_path(settings))
    flow = AddServerFlow(
        search=model,
        orchestrator=AuthOrchestrator(BrowserAuthTransport(settings)),
        store=store,
    )
    try:
        added = asyncio.run(flow.select_row(row))
    except AuthError as exc:
        _console.print(f"[red]Authorization failed:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1) from exc
    finally:
        flow.close()

    if added is None:
        _console.print("[dim]Cancelled.[/dim]")
        return
    _console.print(f"[green]Added[/green] {added.base_url}")


@app.command()
def servers() -> None:
    """List the servers added so far."""

    settings = AppSettings()
    store = JsonServerStore(_store_path(settings))
    if not store.has_servers:
        _console.print("[dim]No servers added yet.[/dim]")
        return
    _console.print(build_servers_table(store.servers()))


@settings_app.command("show")
def settings_show() -> None:
    """Print the effective settings."""

    settings = AppSettings()
    table = Table(title="Settings")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Value", style="white")
    for name, value in settings.model_dump(mode="json").items():
        table.add_row(name, str(value))
    _console.print(table)


@settings_app.command("force-tcp")
def settings_force_tcp(
    state: str = typer.Argument(..., help="on or off"),
) -> None:
    """Only use TCP for VPN connections (stored in the user config .env)."""

    value = state.strip().lower()
    if value not in ("on", "off"):
        raise typer.BadParameter("state must be 'on' or 'off'")
    env_path = write_user_env_vars({"EDUVPN_FORCE_TCP": "true" if value == "on" else "false"})
    _console.print(f"[green]Force TCP {value}[/green] (saved to {env_path})")


@app.command(name="version")
def show_version() -> None:
    """Print the application name and version."""

    try:
        current = package_version(APP_NAME)
    except PackageNotFoundError:
        current = "unknown"
    typer.echo(f"{APP_NAME} {current}")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
