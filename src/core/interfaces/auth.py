"""Authorization transport contract.

The transport owns the external authorization surface (a browser, a web
view). It reports a user dismissal by raising `core.errors.AuthCancelled`;
anything else it raises is treated as a failure.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from core.domain.auth import AuthState, WayfSkippingInfo


@runtime_checkable
class AuthTransport(Protocol):
    async def authorize(self, base_url: str, wayf_skipping_info: WayfSkippingInfo | None = None) -> AuthState:
        ...
