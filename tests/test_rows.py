from __future__ import annotations

import pytest

from core.domain.discovery import DiscoveryDirectory, InstituteAccessServer
from core.domain.rows import Row, RowKind, SectionKind, project_rows, server_url_from_query


def _names(rows: list[Row]) -> list[str]:
    return [row.display_name(["en-US"]) for row in rows]


def test_blank_query_lists_everything_in_section_order(directory: DiscoveryDirectory) -> None:
    rows = project_rows(directory, "")

    assert _names(rows) == [
        "Institute Access",
        "SURF",
        "DeiC",
        "Demo",
        "Secure Internet",
        "Delft University",
        "AARNet",
    ]
    assert [row.kind for row in rows][0] is RowKind.SECTION_HEADER


def test_no_directory_and_no_match_give_single_no_results_row(directory: DiscoveryDirectory) -> None:
    assert project_rows(None, "") == [Row.no_results()]
    assert project_rows(directory, "zzz-nothing") == [Row.no_results()]
    assert project_rows(DiscoveryDirectory(), "") == [Row.no_results()]


def test_query_is_case_insensitive_substring(directory: DiscoveryDirectory) -> None:
    assert _names(project_rows(directory, "sUr")) == ["Institute Access", "SURF"]


def test_query_matches_any_locale_and_keywords(directory: DiscoveryDirectory) -> None:
    assert _names(project_rows(directory, "demoserver")) == ["Institute Access", "Demo"]
    assert _names(project_rows(directory, "danish")) == ["Institute Access", "DeiC"]


def test_org_only_match_has_only_secure_internet_section(directory: DiscoveryDirectory) -> None:
    rows = project_rows(directory, "delft")

    assert [row.kind for row in rows] == [RowKind.SECTION_HEADER, RowKind.SECURE_INTERNET_ORG]
    assert rows[0].section is SectionKind.SECURE_INTERNET
    assert rows[1].base_url == "https://nl.eduvpn.org/"


def test_organizations_can_be_left_out(directory: DiscoveryDirectory) -> None:
    rows = project_rows(directory, "", include_organizations=False)

    assert RowKind.SECURE_INTERNET_ORG not in {row.kind for row in rows}
    assert project_rows(directory, "delft", include_organizations=False) == [Row.no_results()]


def test_host_name_query_offers_server_by_url(directory: DiscoveryDirectory) -> None:
    rows = project_rows(directory, "vpn.example.org")

    assert rows == [Row.header(SectionKind.SERVER_BY_URL), Row.server_by_url("https://vpn.example.org/")]
    assert rows[1].is_server_row
    assert rows[1].base_url == "https://vpn.example.org/"


def test_server_by_url_comes_before_directory_matches() -> None:
    directory = DiscoveryDirectory(
        institute_access_servers=(
            InstituteAccessServer(base_url="https://vpn.surf.nl/", display_name="vpn.surf.nl"),
        )
    )

    rows = project_rows(directory, "vpn.surf.nl")

    assert [row.kind for row in rows] == [
        RowKind.SECTION_HEADER,
        RowKind.SERVER_BY_URL,
        RowKind.SECTION_HEADER,
        RowKind.INSTITUTE_ACCESS_SERVER,
    ]


def test_duplicate_servers_appear_once() -> None:
    server = InstituteAccessServer(base_url="https://a.example.org/", display_name="A")
    directory = DiscoveryDirectory(institute_access_servers=(server, server))

    assert len(project_rows(directory, "")) == 2


@pytest.mark.parametrize(
    ("query", "expected"),
    [
        ("vpn.example.org", "https://vpn.example.org/"),
        ("https://VPN.example.org/admin", "https://vpn.example.org/admin/"),
        ("  vpn.example.org  ", "https://vpn.example.org/"),
        ("http://vpn.example.org", None),
        ("surf", None),
        ("vpn example.org", None),
        (".example", None),
        ("https://[::1", None),
        ("", None),
    ],
)
def test_server_url_from_query(query: str, expected: str | None) -> None:
    assert server_url_from_query(query) == expected


def test_row_keys_ignore_display_values() -> None:
    old = Row.institute_access(InstituteAccessServer(base_url="https://a.example.org/", display_name="A"))
    renamed = Row.institute_access(InstituteAccessServer(base_url="https://a.example.org/", display_name="B"))

    assert old.key == renamed.key
    assert old != renamed
    assert Row.header(SectionKind.INSTITUTE_ACCESS).key != Row.header(SectionKind.SECURE_INTERNET).key
