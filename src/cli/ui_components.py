"""CLI UI components (Rich).

Why separate components:
- Keeps command logic apart from visual details.
- Lets several commands reuse the same tables/panels.
"""

from __future__ import annotations

from typing import Sequence

from rich.align import Align
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from adapters.server_store import StoredServer
from core.domain.rows import Row, RowKind


def print_banner(console: Console) -> None:
    title = Text("eduVPN discovery", style="bold cyan")
    subtitle = Text("Servers • Organizations • Messages", style="dim")
    body = Align.center(Text.assemble(title, "\n", subtitle), vertical="middle")
    console.print(Panel(body, border_style="cyan", padding=(1, 4)))


def build_rows_table(rows: Sequence[Row], preferred_locales: Sequence[str] = ()) -> Table:
    """Search rows as a table; section headers become bold separator lines."""

    table = Table(title="Search results", show_lines=False)
    table.add_column("#", style="dim", no_wrap=True, justify="right")
    table.add_column("Name", style="white")
    table.add_column("Base URL", style="magenta")

    server_number = 0
    for row in rows:
        if row.is_section_header:
            table.add_row("", Text(row.display_name(preferred_locales), style="bold cyan"), "")
        elif row.kind is RowKind.NO_RESULTS:
            table.add_row("", Text("No results", style="yellow"), "")
        else:
            table.add_row(str(server_number), row.display_name(preferred_locales), row.base_url or "")
            server_number += 1
    return table


def build_messages_panel(text: str) -> Panel:
    body = Text(text) if text else Text("No messages.", style="dim")
    return Panel(body, title=Text("System messages", style="bold yellow"), border_style="yellow")


def build_servers_table(servers: Sequence[StoredServer]) -> Table:
    table = Table(title="Added servers")
    table.add_column("Base URL", style="magenta")
    table.add_column("Type", style="cyan", no_wrap=True)
    table.add_column("Organization", style="white")
    table.add_column("Token expires", style="dim")
    for server in servers:
        expires = ""
        if server.auth_state is not None and server.auth_state.expires_at is not None:
            expires = server.auth_state.expires_at.isoformat(timespec="seconds")
        table.add_row(
            server.base_url,
            "Secure Internet" if server.is_secure_internet else "Institute Access",
            server.org_id or "",
            expires,
        )
    return table
