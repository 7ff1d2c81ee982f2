"""Discovery data model (Pydantic v2).

The directory is what the search screen shows: Institute Access servers and
Secure Internet organizations, each list in the order the feed publishes it.
Secure Internet servers are kept only to resolve the authentication URL
template of an organization's home server.

Each successful tier load produces a fresh `DiscoveryDirectory`; directories
are never merged across tiers.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field

from core.domain.language import LocalizedText


class DataTier(str, Enum):
    """Discovery sources, in the order they are tried."""

    CACHE = "cache"
    APP_BUNDLE = "app_bundle"
    SERVER = "server"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]


_TIER_RANK = {DataTier.CACHE: 0, DataTier.APP_BUNDLE: 1, DataTier.SERVER: 2}


class DirectoryType(str, Enum):
    SERVER_LIST = "server_list"
    ORGANIZATION_LIST = "organization_list"

    @property
    def filename(self) -> str:
        return f"{self.value}.json"


class InstituteAccessServer(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    base_url: str = Field(..., min_length=1)
    display_name: LocalizedText = Field(...)
    keyword_list: LocalizedText | None = None
    support_contact: tuple[str, ...] = ()


class SecureInternetServer(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    base_url: str = Field(..., min_length=1)
    country_code: str = ""
    authentication_url_template: str | None = None
    support_contact: tuple[str, ...] = ()


class Organization(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    org_id: str = Field(..., min_length=1)
    display_name: LocalizedText = Field(...)
    secure_internet_home: str = Field(..., min_length=1)
    keyword_list: LocalizedText | None = None


class DiscoveryDirectory(BaseModel):
    model_config = ConfigDict(frozen=True)

    institute_access_servers: tuple[InstituteAccessServer, ...] = ()
    secure_internet_organizations: tuple[Organization, ...] = ()
    secure_internet_servers: tuple[SecureInternetServer, ...] = ()

    def merged_with(self, other: DiscoveryDirectory) -> DiscoveryDirectory:
        """Combine the two feeds of *one* tier (server list + organization list)."""

        return DiscoveryDirectory(
            institute_access_servers=self.institute_access_servers + other.institute_access_servers,
            secure_internet_organizations=self.secure_internet_organizations + other.secure_internet_organizations,
            secure_internet_servers=self.secure_internet_servers + other.secure_internet_servers,
        )

    def secure_internet_server(self, base_url: str) -> SecureInternetServer | None:
        for server in self.secure_internet_servers:
            if server.base_url == base_url:
                return server
        return None

    @property
    def is_empty(self) -> bool:
        return not (self.institute_access_servers or self.secure_internet_organizations)


def _entries(payload: Mapping[str, Any], key: str) -> list[Mapping[str, Any]]:
    entries = payload.get(key)
    if not isinstance(entries, list):
        raise ValueError(f"Discovery feed has no `{key}` list")
    return [e for e in entries if isinstance(e, Mapping)]


def parse_server_list(payload: Mapping[str, Any]) -> DiscoveryDirectory:
    institute: list[InstituteAccessServer] = []
    secure: list[SecureInternetServer] = []
    for entry in _entries(payload, "server_list"):
        server_type = entry.get("server_type")
        if server_type == "institute_access":
            institute.append(InstituteAccessServer.model_validate(entry))
        elif server_type == "secure_internet":
            secure.append(SecureInternetServer.model_validate(entry))
    return DiscoveryDirectory(
        institute_access_servers=tuple(institute),
        secure_internet_servers=tuple(secure),
    )


def parse_organization_list(payload: Mapping[str, Any]) -> DiscoveryDirectory:
    orgs = [Organization.model_validate(entry) for entry in _entries(payload, "organization_list")]
    return DiscoveryDirectory(secure_internet_organizations=tuple(orgs))


def parse_directory(directory_type: DirectoryType, payload: Mapping[str, Any]) -> DiscoveryDirectory:
    if directory_type is DirectoryType.SERVER_LIST:
        return parse_server_list(payload)
    return parse_organization_list(payload)
