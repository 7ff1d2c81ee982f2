from __future__ import annotations

import asyncio
from typing import Any

import pytest

from core.domain.discovery import DirectoryType, DiscoveryDirectory, InstituteAccessServer, Organization
from core.errors import DiscoveryNotFound


class MemorySource:
    """In-memory discovery tier; records every read in a shared call log."""

    def __init__(
        self,
        name: str,
        feeds: dict[DirectoryType, dict[str, Any]] | None = None,
        *,
        error: BaseException | None = None,
        calls: list[tuple[str, DirectoryType]] | None = None,
        delay: float = 0.0,
    ) -> None:
        self.name = name
        self.feeds = feeds or {}
        self.error = error
        self.calls = calls if calls is not None else []
        self.delay = delay

    async def read(self, directory_type: DirectoryType) -> dict[str, Any]:
        self.calls.append((self.name, directory_type))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if directory_type not in self.feeds:
            raise DiscoveryNotFound(f"{self.name} has no {directory_type.value}")
        return self.feeds[directory_type]


def server_feed(*servers: tuple[str, Any]) -> dict[str, Any]:
    return {
        "v": 1,
        "server_list": [
            {"server_type": "institute_access", "base_url": base_url, "display_name": name}
            for base_url, name in servers
        ],
    }


def org_feed(*orgs: tuple[str, Any, str]) -> dict[str, Any]:
    return {
        "v": 1,
        "organization_list": [
            {"org_id": org_id, "display_name": name, "secure_internet_home": home}
            for org_id, name, home in orgs
        ],
    }


def feeds(servers: dict[str, Any], orgs: dict[str, Any] | None = None) -> dict[DirectoryType, dict[str, Any]]:
    out = {DirectoryType.SERVER_LIST: servers}
    if orgs is not None:
        out[DirectoryType.ORGANIZATION_LIST] = orgs
    return out


@pytest.fixture
def directory() -> DiscoveryDirectory:
    return DiscoveryDirectory(
        institute_access_servers=(
            InstituteAccessServer(base_url="https://vpn.surf.nl/", display_name={"en-US": "SURF"}),
            InstituteAccessServer(base_url="https://eduvpn.deic.dk/", display_name="DeiC", keyword_list="danish"),
            InstituteAccessServer(base_url="https://vpn.tuxed.net/", display_name={"en-US": "Demo", "nl-NL": "Demoserver"}),
        ),
        secure_internet_organizations=(
            Organization(org_id="https://idp.tudelft.nl", display_name="Delft University", secure_internet_home="https://nl.eduvpn.org/"),
            Organization(org_id="https://idp.aarnet.edu.au", display_name="AARNet", secure_internet_home="https://au.eduvpn.org/"),
        ),
    )
