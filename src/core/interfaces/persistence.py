"""Server store contract.

The store is the only writer of the server-presence flag; the core reads it
through `core.services.server_presence`.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from core.domain.auth import AuthState


@runtime_checkable
class ServerStore(Protocol):
    @property
    def has_servers(self) -> bool:
        ...

    def add_simple_server(self, base_url: str, auth_state: AuthState) -> None:
        ...

    def add_secure_internet_server(self, base_url: str, org_id: str, auth_state: AuthState) -> None:
        ...
