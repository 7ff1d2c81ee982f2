from __future__ import annotations

import asyncio

import pytest

from conftest import MemorySource, feeds, org_feed, server_feed
from core.domain.discovery import (
    DataTier,
    DiscoveryDirectory,
    InstituteAccessServer,
    Organization,
    SecureInternetServer,
)
from core.domain.rows import Row, RowKind, RowsDifference, apply_difference
from core.errors import LoadError
from core.services.discovery_loader import DiscoveryLoader, LoadResult
from core.services.search import SearchHooks, SearchModel


class RecordingObserver:
    def __init__(self, model: SearchModel) -> None:
        self.rows: list[Row] = model.rows
        self.differences: list[RowsDifference] = []

    def rows_changed(self, model: SearchModel, difference: RowsDifference) -> None:
        self.differences.append(difference)
        self.rows = apply_difference(self.rows, difference)


def _directory(*names: str) -> DiscoveryDirectory:
    return DiscoveryDirectory(
        institute_access_servers=tuple(
            InstituteAccessServer(base_url=f"https://{name.lower()}.example.org/", display_name=name) for name in names
        )
    )


def _model(loader: DiscoveryLoader | None = None, **kwargs) -> SearchModel:
    loader = loader or DiscoveryLoader(cache=MemorySource("c"), bundle=MemorySource("b"), remote=MemorySource("s"))
    return SearchModel(loader, **kwargs)


def test_starts_with_no_results() -> None:
    model = _model()

    assert model.number_of_rows() == 1
    assert model.row(0).kind is RowKind.NO_RESULTS
    assert not model.can_select_row(0)
    assert model.applied_tier is None


def test_later_directory_replaces_earlier_one() -> None:
    model = _model()
    observer = RecordingObserver(model)
    model.add_observer(observer)

    assert model.apply(LoadResult(1, DataTier.CACHE, _directory("Alpha", "Beta")))
    assert model.apply(LoadResult(1, DataTier.SERVER, _directory("Beta", "Gamma")))

    names = [row.display_name() for row in model.rows if row.is_server_row]
    assert names == ["Beta", "Gamma"]
    assert observer.rows == model.rows
    assert len(observer.differences) == 2
    assert model.applied_tier is DataTier.SERVER


def test_stale_results_are_discarded() -> None:
    model = _model()
    model.apply(LoadResult(2, DataTier.CACHE, _directory("New")))

    assert not model.apply(LoadResult(1, DataTier.SERVER, _directory("Old")))
    assert model.apply(LoadResult(2, DataTier.SERVER, _directory("Newer")))
    assert not model.apply(LoadResult(2, DataTier.APP_BUNDLE, _directory("Stand-in")))
    assert not model.apply(LoadResult(2, DataTier.SERVER, _directory("Again")))

    assert [row.display_name() for row in model.rows if row.is_server_row] == ["Newer"]


def test_query_changes_notify_observers_with_consistent_differences() -> None:
    model = _model()
    model.apply(LoadResult(1, DataTier.SERVER, _directory("Alpha", "Beta", "Gamma")))
    observer = RecordingObserver(model)
    model.add_observer(observer)

    for query in ("a", "al", "zzz", "", "gamma", "GAMMA"):
        model.set_search_query(query)
        assert observer.rows == model.rows

    assert model.query == "GAMMA"
    # "a" matches every server and "GAMMA" equals "gamma": no change either time.
    assert len(observer.differences) == 4


def test_unchanged_rows_do_not_notify() -> None:
    model = _model()
    observer = RecordingObserver(model)
    model.add_observer(observer)

    difference = model.set_search_query("zzz")

    assert difference.is_empty
    assert observer.differences == []


def test_removed_observer_is_not_called() -> None:
    model = _model()
    observer = RecordingObserver(model)
    handle = model.add_observer(observer)
    model.remove_observer(handle)
    model.remove_observer(handle)

    model.apply(LoadResult(1, DataTier.SERVER, _directory("Alpha")))

    assert observer.differences == []


def test_load_applies_stand_in_then_server_and_reports_server_data() -> None:
    loaded: list[LoadResult] = []
    loader = DiscoveryLoader(
        cache=MemorySource("c", feeds(server_feed(("https://a.example.org/", "Cached")), org_feed())),
        bundle=MemorySource("b"),
        remote=MemorySource("s", feeds(server_feed(("https://b.example.org/", "Fresh")), org_feed())),
    )
    model = _model(loader, hooks=SearchHooks(server_data_loaded=loaded.append))
    observer = RecordingObserver(model)
    model.add_observer(observer)

    asyncio.run(model.load())

    assert [row.display_name() for row in model.rows if row.is_server_row] == ["Fresh"]
    assert len(observer.differences) == 2
    assert [result.tier for result in loaded] == [DataTier.SERVER]
    assert not model.is_loading


def test_load_warns_when_server_fails_after_stand_in() -> None:
    warnings: list[str] = []
    loader = DiscoveryLoader(
        cache=MemorySource("c", feeds(server_feed(("https://a.example.org/", "Cached")), org_feed())),
        bundle=MemorySource("b"),
        remote=MemorySource("s", error=ConnectionError("offline")),
    )
    model = _model(loader, hooks=SearchHooks(warning=warnings.append))

    asyncio.run(model.load())

    assert model.applied_tier is DataTier.CACHE
    assert len(warnings) == 1
    assert "offline" in warnings[0]


def test_load_error_propagates_and_clears_loading_flag() -> None:
    model = _model()

    with pytest.raises(LoadError):
        asyncio.run(model.load())

    assert not model.is_loading
    assert model.row(0).kind is RowKind.NO_RESULTS


def test_wayf_skipping_info_for_secure_internet_org() -> None:
    directory = DiscoveryDirectory(
        secure_internet_organizations=(
            Organization(org_id="https://idp.tudelft.nl", display_name="TU Delft", secure_internet_home="https://nl.eduvpn.org/"),
            Organization(org_id="https://idp.other", display_name="Other", secure_internet_home="https://xx.eduvpn.org/"),
        ),
        secure_internet_servers=(
            SecureInternetServer(
                base_url="https://nl.eduvpn.org/",
                authentication_url_template="https://idp.surf.nl/?entityID=@ORG_ID@&return=@RETURN_TO@",
            ),
        ),
    )
    model = _model()
    model.apply(LoadResult(1, DataTier.SERVER, directory))

    delft, other = [row for row in model.rows if row.is_server_row]

    info = model.wayf_skipping_info(delft)
    assert info is not None
    assert info.org_id == "https://idp.tudelft.nl"
    assert model.wayf_skipping_info(other) is None
    assert model.wayf_skipping_info(model.row(0)) is None


def test_bundle_then_server_ends_on_server_rows_and_drops_stale_generation() -> None:
    bundle_feeds = feeds(server_feed(("https://d1.example.org/", "Bundled D1")), org_feed())
    server_feeds = feeds(server_feed(("https://d2.example.org/", "Server D2")), org_feed())
    loader = DiscoveryLoader(
        cache=MemorySource("c", error=OSError("no cache")),
        bundle=MemorySource("b", bundle_feeds),
        remote=MemorySource("s", server_feeds),
    )
    model = _model(loader)
    seen: list[list[str]] = []

    class Names:
        def rows_changed(self, changed: SearchModel, difference: RowsDifference) -> None:
            seen.append([row.display_name() for row in changed.rows if row.is_server_row])

    model.add_observer(Names())

    asyncio.run(model.load())
    first_generation = loader.generation
    asyncio.run(model.load())

    assert seen[:2] == [["Bundled D1"], ["Server D2"]]
    assert [row.display_name() for row in model.rows if row.is_server_row] == ["Server D2"]

    late = asyncio.run(loader.load_tier(DataTier.APP_BUNDLE, include_organizations=True, generation=first_generation))
    assert not model.apply(late)
    assert [row.display_name() for row in model.rows if row.is_server_row] == ["Server D2"]
