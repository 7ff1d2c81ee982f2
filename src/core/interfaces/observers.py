"""Observer contracts for UI layers."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from core.domain.rows import RowsDifference

if TYPE_CHECKING:
    from core.services.search import SearchModel


@runtime_checkable
class RowsChangedObserver(Protocol):
    def rows_changed(self, model: SearchModel, difference: RowsDifference) -> None:
        ...
