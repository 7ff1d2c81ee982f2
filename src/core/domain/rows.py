"""Search rows: projection of a directory + query, and keyed diffs.

Rows are compared by identity key (kind + server/org/section id), never by
position or full value, so a renamed server is an in-place update rather than
a delete/insert pair. Differences are expressed only as deleted and inserted
indices because list widgets understand nothing else; a moved row is a
delete + insert.
"""

from __future__ import annotations

from bisect import bisect_left
from dataclasses import dataclass, field
from enum import Enum
from typing import Hashable, Sequence
from urllib.parse import urlsplit, urlunsplit

from core.domain.discovery import DiscoveryDirectory, InstituteAccessServer, Organization
from core.domain.language import all_variants, display_text


class RowKind(str, Enum):
    SECTION_HEADER = "section_header"
    SERVER_BY_URL = "server_by_url"
    INSTITUTE_ACCESS_SERVER = "institute_access_server"
    SECURE_INTERNET_ORG = "secure_internet_org"
    NO_RESULTS = "no_results"


class SectionKind(str, Enum):
    """Fixed section order: typed URL, Institute Access, Secure Internet."""

    SERVER_BY_URL = "server_by_url"
    INSTITUTE_ACCESS = "institute_access"
    SECURE_INTERNET = "secure_internet"


@dataclass(frozen=True)
class Row:
    kind: RowKind
    section: SectionKind | None = None
    server: InstituteAccessServer | None = None
    organization: Organization | None = None
    url: str | None = None

    @classmethod
    def header(cls, section: SectionKind) -> Row:
        return cls(RowKind.SECTION_HEADER, section=section)

    @classmethod
    def institute_access(cls, server: InstituteAccessServer) -> Row:
        return cls(RowKind.INSTITUTE_ACCESS_SERVER, server=server)

    @classmethod
    def secure_internet_org(cls, organization: Organization) -> Row:
        return cls(RowKind.SECURE_INTERNET_ORG, organization=organization)

    @classmethod
    def server_by_url(cls, url: str) -> Row:
        return cls(RowKind.SERVER_BY_URL, url=url)

    @classmethod
    def no_results(cls) -> Row:
        return cls(RowKind.NO_RESULTS)

    @property
    def key(self) -> tuple[Hashable, ...]:
        if self.kind is RowKind.SECTION_HEADER:
            return (self.kind, self.section)
        if self.kind is RowKind.INSTITUTE_ACCESS_SERVER and self.server is not None:
            return (self.kind, self.server.base_url)
        if self.kind is RowKind.SECURE_INTERNET_ORG and self.organization is not None:
            return (self.kind, self.organization.org_id)
        if self.kind is RowKind.SERVER_BY_URL:
            return (self.kind, self.url)
        return (self.kind,)

    @property
    def base_url(self) -> str | None:
        """URL to authorize against when the row is selected."""

        if self.server is not None:
            return self.server.base_url
        if self.organization is not None:
            return self.organization.secure_internet_home
        return self.url

    @property
    def is_section_header(self) -> bool:
        return self.kind is RowKind.SECTION_HEADER

    @property
    def is_server_row(self) -> bool:
        return self.kind in (
            RowKind.SERVER_BY_URL,
            RowKind.INSTITUTE_ACCESS_SERVER,
            RowKind.SECURE_INTERNET_ORG,
        )

    def display_name(self, preferred_locales: Sequence[str] = ()) -> str:
        if self.server is not None:
            return display_text(self.server.display_name, preferred_locales)
        if self.organization is not None:
            return display_text(self.organization.display_name, preferred_locales)
        if self.url is not None:
            return self.url
        if self.section is not None:
            return _SECTION_TITLES[self.section]
        return "No results"


_SECTION_TITLES = {
    SectionKind.SERVER_BY_URL: "Server address",
    SectionKind.INSTITUTE_ACCESS: "Institute Access",
    SectionKind.SECURE_INTERNET: "Secure Internet",
}


@dataclass(frozen=True)
class RowsDifference:
    deleted_indices: frozenset[int] = frozenset()
    insertions: tuple[tuple[int, Row], ...] = ()
    # Same key, new value (e.g. a renamed server); indices into the new rows.
    updated_indices: frozenset[int] = field(default=frozenset())

    @property
    def is_empty(self) -> bool:
        return not (self.deleted_indices or self.insertions or self.updated_indices)

    @property
    def inserted_indices(self) -> list[int]:
        return [index for index, _ in self.insertions]


def server_url_from_query(query: str) -> str | None:
    """Turn a typed host name or https URL into a server base URL.

    `vpn.example.org` -> `https://vpn.example.org/`. Anything with spaces, no
    dot in the host, or a non-https scheme is not a URL.
    """

    text = query.strip()
    if not text or any(ch.isspace() for ch in text):
        return None
    if "://" not in text:
        text = "https://" + text
    try:
        parts = urlsplit(text)
    except ValueError:
        return None
    if parts.scheme.lower() != "https" or not parts.hostname:
        return None
    host = parts.hostname
    if "." not in host or host.startswith(".") or host.endswith("."):
        return None
    netloc = parts.netloc.lower()
    path = parts.path if parts.path.endswith("/") else parts.path + "/"
    return urlunsplit(("https", netloc, path, "", ""))


def _matches(needle: str, *values: object) -> bool:
    for value in values:
        for text in all_variants(value):  # type: ignore[arg-type]
            if needle in text.casefold():
                return True
    return False


def _dedupe(rows: list[Row]) -> list[Row]:
    seen: set[tuple[Hashable, ...]] = set()
    out: list[Row] = []
    for row in rows:
        if row.key in seen:
            continue
        seen.add(row.key)
        out.append(row)
    return out


def project_rows(
    directory: DiscoveryDirectory | None,
    query: str,
    *,
    include_organizations: bool = True,
) -> list[Row]:
    """Ordered rows for `query` (case-insensitive substring, blank = all)."""

    needle = query.strip().casefold()
    rows: list[Row] = []

    url = server_url_from_query(query)
    if url is not None:
        rows.append(Row.header(SectionKind.SERVER_BY_URL))
        rows.append(Row.server_by_url(url))

    if directory is not None:
        institute = _dedupe([
            Row.institute_access(server)
            for server in directory.institute_access_servers
            if not needle or _matches(needle, server.display_name, server.keyword_list)
        ])
        if institute:
            rows.append(Row.header(SectionKind.INSTITUTE_ACCESS))
            rows.extend(institute)

        if include_organizations:
            orgs = _dedupe([
                Row.secure_internet_org(org)
                for org in directory.secure_internet_organizations
                if not needle or _matches(needle, org.display_name, org.keyword_list)
            ])
            if orgs:
                rows.append(Row.header(SectionKind.SECURE_INTERNET))
                rows.extend(orgs)

    if not rows:
        return [Row.no_results()]
    return rows


def _longest_increasing_run(values: list[int]) -> set[int]:
    """Positions (into `values`) of one longest strictly increasing subsequence."""

    tails: list[int] = []
    tail_positions: list[int] = []
    parents: list[int] = [-1] * len(values)
    for position, value in enumerate(values):
        slot = bisect_left(tails, value)
        if slot == len(tails):
            tails.append(value)
            tail_positions.append(position)
        else:
            tails[slot] = value
            tail_positions[slot] = position
        parents[position] = tail_positions[slot - 1] if slot > 0 else -1

    kept: set[int] = set()
    position = tail_positions[-1] if tail_positions else -1
    while position != -1:
        kept.add(position)
        position = parents[position]
    return kept


def diff_rows(old_rows: Sequence[Row], new_rows: Sequence[Row]) -> RowsDifference:
    """Deleted old indices + (new index, row) insertions turning old into new.

    Rows whose key is in both lists stay put when they belong to a longest
    run whose relative order is unchanged; the rest are moved with a
    delete + insert pair.
    """

    new_index = {row.key: index for index, row in enumerate(new_rows)}

    common_old: list[int] = []
    common_new: list[int] = []
    for index, row in enumerate(old_rows):
        target = new_index.get(row.key)
        if target is not None:
            common_old.append(index)
            common_new.append(target)

    kept_positions = _longest_increasing_run(common_new)
    kept_old = {common_old[p] for p in kept_positions}
    kept_new = {common_new[p] for p in kept_positions}

    deleted = frozenset(i for i in range(len(old_rows)) if i not in kept_old)
    insertions = tuple((i, row) for i, row in enumerate(new_rows) if i not in kept_new)
    updated = frozenset(
        common_new[p] for p in kept_positions if old_rows[common_old[p]] != new_rows[common_new[p]]
    )
    return RowsDifference(deleted_indices=deleted, insertions=insertions, updated_indices=updated)


def apply_difference(old_rows: Sequence[Row], difference: RowsDifference) -> list[Row]:
    """Delete (descending), then insert (ascending): what a list widget does."""

    rows = list(old_rows)
    for index in sorted(difference.deleted_indices, reverse=True):
        del rows[index]
    for index, row in sorted(difference.insertions, key=lambda item: item[0]):
        rows.insert(index, row)
    return rows
