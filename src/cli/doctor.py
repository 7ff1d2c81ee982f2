"""Doctor command for environment diagnostics."""

from __future__ import annotations

import asyncio

import typer
from rich.console import Console
from rich.table import Table

from adapters.discovery_sources import BundledSource, FileCacheSource, RemoteSource
from core.config import AppSettings
from core.domain.discovery import DirectoryType, parse_directory
from core.interfaces.discovery import DiscoverySource

app = typer.Typer(no_args_is_help=True, help="Environment diagnostics and configuration checks.")

_console = Console()


async def _check_source(source: DiscoverySource, directory_type: DirectoryType) -> tuple[bool, str]:
    try:
        payload = await source.read(directory_type)
        directory = parse_directory(directory_type, payload)
    except Exception as exc:
        return False, f"{exc.__class__.__name__}: {exc}"
    count = len(directory.institute_access_servers) + len(directory.secure_internet_organizations)
    return True, f"{count} entries (v={payload.get('v', '?')})"


@app.command()
def run() -> None:
    """Check every discovery tier and show the effective configuration."""

    settings = AppSettings()

    table = Table(title="eduVPN discovery doctor")
    table.add_column("Check", style="bright_green", no_wrap=True)
    table.add_column("Status", style="white")
    table.add_column("Details", style="dim")

    table.add_row("Discovery URL", "OK", settings.discovery_base_url)
    table.add_row("Locales", "OK", ", ".join(settings.preferred_locales))
    table.add_row("Force TCP", "OK", "on" if settings.force_tcp else "off")

    sources: list[tuple[str, DiscoverySource, str]] = [
        ("Cache", FileCacheSource(settings.cache_dir), "OPTIONAL"),
        ("Bundled data", BundledSource(), "FAIL"),
        ("Discovery server", RemoteSource(settings), "FAIL"),
    ]
    for label, source, failure_status in sources:
        for directory_type in DirectoryType:
            ok, detail = asyncio.run(_check_source(source, directory_type))
            table.add_row(f"{label}: {directory_type.filename}", "OK" if ok else failure_status, detail)

    _console.print(table)
