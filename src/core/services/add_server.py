"""Row selection -> authorization -> stored server.

Also answers "may the user leave the add-server screen": only once at least
one server exists and no authorization is in flight.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from core.domain.auth import AuthState
from core.domain.rows import Row, RowKind
from core.errors import AuthCancelled
from core.interfaces.persistence import ServerStore
from core.services.auth_orchestrator import AuthOrchestrator
from core.services.search import SearchModel
from core.services.server_presence import ServerPresenceNotifier, shared_notifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AddedServer:
    base_url: str
    auth_state: AuthState
    kind: RowKind
    org_id: str | None = None


class AddServerFlow:
    def __init__(
        self,
        *,
        search: SearchModel,
        orchestrator: AuthOrchestrator,
        store: ServerStore,
        notifier: ServerPresenceNotifier | None = None,
    ) -> None:
        self._search = search
        self._orchestrator = orchestrator
        self._store = store
        self._notifier = notifier or shared_notifier()
        self.has_added_servers = self._notifier.has_servers
        self._subscription = self._notifier.subscribe(self._has_servers_changed)

    def _has_servers_changed(self, has_servers: bool) -> None:
        self.has_added_servers = has_servers

    @property
    def is_busy(self) -> bool:
        return self._orchestrator.is_busy

    @property
    def can_go_back(self) -> bool:
        return self.has_added_servers and not self.is_busy

    def close(self) -> None:
        self._notifier.unsubscribe(self._subscription)

    async def select_index(self, index: int) -> AddedServer | None:
        return await self.select_row(self._search.row(index))

    async def select_row(self, row: Row) -> AddedServer | None:
        """Authorize against the row's server and store it.

        Returns `None` for rows that are not servers and when the user
        cancelled; `core.errors.AuthError` propagates for real failures.
        """

        base_url = row.base_url
        if not row.is_server_row or base_url is None:
            return None

        try:
            auth_state = await self._orchestrator.start_auth(base_url, self._search.wayf_skipping_info(row))
        except AuthCancelled:
            logger.info("Adding %s cancelled by the user", base_url)
            return None

        if row.kind is RowKind.SECURE_INTERNET_ORG and row.organization is not None:
            org_id = row.organization.org_id
            self._store.add_secure_internet_server(base_url, org_id, auth_state)
            return AddedServer(base_url, auth_state, row.kind, org_id)

        self._store.add_simple_server(base_url, auth_state)
        return AddedServer(base_url, auth_state, row.kind)
