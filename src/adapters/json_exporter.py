"""JSON export of search results.

Why JSON:
- Lets scripts consume discovery results without scraping the table output.
"""

from __future__ import annotations

import json
from typing import Any, Sequence

from core.domain.discovery import DiscoveryDirectory
from core.domain.rows import Row


def row_to_dict(row: Row, preferred_locales: Sequence[str] = ()) -> dict[str, Any]:
    out: dict[str, Any] = {"kind": row.kind.value, "name": row.display_name(preferred_locales)}
    if row.section is not None:
        out["section"] = row.section.value
    if row.base_url is not None:
        out["base_url"] = row.base_url
    if row.organization is not None:
        out["org_id"] = row.organization.org_id
    return out


def export_rows_json(rows: Sequence[Row], preferred_locales: Sequence[str] = ()) -> str:
    """Stable, UTF-8 friendly JSON for a list of rows."""

    payload = [row_to_dict(row, preferred_locales) for row in rows]
    return json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n"


def export_directory_json(directory: DiscoveryDirectory) -> str:
    payload = directory.model_dump(mode="json")
    return json.dumps(payload, ensure_ascii=False, indent=2, sort_keys=True) + "\n"
