"""Authorization models.

`AuthState` is opaque to the core: the orchestrator hands it to the caller and
forgets it. Persisting it is the server store's job.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field


class AuthPhase(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    AUTHORIZED = "authorized"
    CANCELLED = "cancelled"
    FAILED = "failed"


class AuthState(BaseModel):
    """Credential handle returned by a successful authorization."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    base_url: str = Field(..., min_length=1)
    access_token: str = Field(..., min_length=1, repr=False)
    refresh_token: str | None = Field(default=None, repr=False)
    token_type: str = "bearer"
    scope: str | None = None
    expires_at: datetime | None = None

    @classmethod
    def from_token_response(cls, base_url: str, payload: dict, *, now: datetime | None = None) -> AuthState:
        now = now or datetime.now(timezone.utc)
        expires_in = payload.get("expires_in")
        expires_at = None
        if isinstance(expires_in, (int, float)):
            expires_at = now + timedelta(seconds=expires_in)
        return cls(
            base_url=base_url,
            access_token=payload.get("access_token", ""),
            refresh_token=payload.get("refresh_token"),
            token_type=str(payload.get("token_type") or "bearer"),
            scope=payload.get("scope"),
            expires_at=expires_at,
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return (now or datetime.now(timezone.utc)) >= self.expires_at


class WayfSkippingInfo(BaseModel):
    """Lets the Secure Internet home server skip its "Where Are You From" page."""

    model_config = ConfigDict(frozen=True)

    authentication_url_template: str = Field(..., min_length=1)
    org_id: str = Field(..., min_length=1)

    def authorization_url(self, authorization_url: str) -> str:
        return (
            self.authentication_url_template
            .replace("@RETURN_TO@", quote(authorization_url, safe=""))
            .replace("@ORG_ID@", quote(self.org_id, safe=""))
        )
