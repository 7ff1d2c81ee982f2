"""Search model: directory + query -> rows, with incremental updates.

This module keeps the state that the search list renders:

- the current directory (replaced wholesale by each applied load result),
- the current query,
- the projected rows.

Every change re-projects the rows and hands observers a `RowsDifference`
so list widgets can animate deletions/insertions instead of reloading.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Callable, Sequence

from core.domain.auth import WayfSkippingInfo
from core.domain.discovery import DataTier, DiscoveryDirectory
from core.domain.rows import Row, RowKind, RowsDifference, diff_rows, project_rows
from core.interfaces.observers import RowsChangedObserver
from core.services.discovery_loader import DiscoveryLoader, LoadResult

logger = logging.getLogger(__name__)


@dataclass
class SearchHooks:
    """Optional callbacks for the layers around the search model."""

    warning: Callable[[str], None] | None = None
    # Server-tier data arrived: the persistence collaborator may cache it.
    server_data_loaded: Callable[[LoadResult], None] | None = None


@dataclass(frozen=True)
class ObserverHandle:
    id: int


class SearchModel:
    def __init__(
        self,
        loader: DiscoveryLoader,
        *,
        include_organizations: bool = True,
        preferred_locales: Sequence[str] = (),
        hooks: SearchHooks | None = None,
    ) -> None:
        self._loader = loader
        self._include_organizations = include_organizations
        self.preferred_locales = list(preferred_locales)
        self._hooks = hooks or SearchHooks()

        self._directory: DiscoveryDirectory | None = None
        self._applied: tuple[int, int] | None = None  # (generation, tier rank)
        self._query = ""
        self._rows: list[Row] = project_rows(None, "", include_organizations=include_organizations)
        self._observers: dict[ObserverHandle, RowsChangedObserver] = {}
        self._ids = itertools.count(1)
        self.is_loading = False

    # --- state ---------------------------------------------------------------

    @property
    def directory(self) -> DiscoveryDirectory | None:
        return self._directory

    @property
    def applied_tier(self) -> DataTier | None:
        if self._applied is None:
            return None
        return next(t for t in DataTier if t.rank == self._applied[1])

    @property
    def query(self) -> str:
        return self._query

    @property
    def rows(self) -> list[Row]:
        return list(self._rows)

    def number_of_rows(self) -> int:
        return len(self._rows)

    def row(self, index: int) -> Row:
        return self._rows[index]

    def can_select_row(self, index: int) -> bool:
        return self._rows[index].is_server_row

    # --- observers -----------------------------------------------------------

    def add_observer(self, observer: RowsChangedObserver) -> ObserverHandle:
        handle = ObserverHandle(next(self._ids))
        self._observers[handle] = observer
        return handle

    def remove_observer(self, handle: ObserverHandle) -> None:
        self._observers.pop(handle, None)

    def _update_rows(self) -> RowsDifference:
        new_rows = project_rows(
            self._directory,
            self._query,
            include_organizations=self._include_organizations,
        )
        difference = diff_rows(self._rows, new_rows)
        self._rows = new_rows
        if not difference.is_empty:
            for observer in list(self._observers.values()):
                observer.rows_changed(self, difference)
        return difference

    # --- inputs --------------------------------------------------------------

    def set_search_query(self, text: str) -> RowsDifference:
        self._query = text
        return self._update_rows()

    def apply(self, result: LoadResult) -> bool:
        """Use `result` unless something newer was already applied.

        Newer means a later generation, or the same generation from a later
        tier (server data is never replaced by its own stand-in).
        """

        stamp = (result.generation, result.tier.rank)
        if self._applied is not None and stamp <= self._applied:
            logger.debug(
                "Discarding stale %s result of generation %d (applied: %s)",
                result.tier.value, result.generation, self._applied,
            )
            return False
        self._applied = stamp
        self._directory = result.directory
        self._update_rows()
        return True

    async def load(self) -> None:
        """Load through all tiers, applying each usable result as it arrives.

        `core.errors.LoadError` propagates when no tier produced data.
        """

        def server_failed(exc: BaseException) -> None:
            if self._hooks.warning:
                self._hooks.warning(f"Discovery server unavailable, showing saved data ({exc.__cause__ or exc})")

        self.is_loading = True
        try:
            async for result in self._loader.iter_tiers(
                include_organizations=self._include_organizations,
                on_server_failure=server_failed,
            ):
                applied = self.apply(result)
                if applied and result.tier is DataTier.SERVER and self._hooks.server_data_loaded:
                    self._hooks.server_data_loaded(result)
        finally:
            self.is_loading = False

    # --- selection -----------------------------------------------------------

    def wayf_skipping_info(self, row: Row) -> WayfSkippingInfo | None:
        if row.kind is not RowKind.SECURE_INTERNET_ORG or row.organization is None or self._directory is None:
            return None
        home = self._directory.secure_internet_server(row.organization.secure_internet_home)
        if home is None or not home.authentication_url_template:
            return None
        return WayfSkippingInfo(
            authentication_url_template=home.authentication_url_template,
            org_id=row.organization.org_id,
        )
