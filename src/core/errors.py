"""Error taxonomy shared by the core and its adapters.

Why a single module:
- Callers (CLI, future GUIs) branch on these types, so they must not depend on
  which adapter raised them.
- `AuthCancelled` is *not* an `AuthError`: a user closing the
  browser is an outcome, not a failure.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:
    from core.domain.discovery import DataTier, DirectoryType


class DecodeError(ValueError):
    """Malformed message payload (missing required field, wrong type)."""

    def __init__(self, message: str, *, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class DiscoveryNotFound(LookupError):
    """A discovery source holds no data for the requested feed."""


class TierLoadError(Exception):
    """One discovery tier failed to produce a directory."""

    def __init__(self, tier: DataTier, directory_type: DirectoryType, cause: BaseException) -> None:
        super().__init__(f"{tier.value}: {directory_type.value} unavailable ({cause})")
        self.tier = tier
        self.directory_type = directory_type
        self.__cause__ = cause


class LoadError(Exception):
    """Every discovery tier was exhausted.

    `cause` is the server-tier failure; `failures` keeps the earlier tiers for
    diagnostics only.
    """

    def __init__(self, cause: BaseException, failures: Mapping[DataTier, BaseException]) -> None:
        super().__init__(f"Discovery data unavailable: {cause}")
        self.cause = cause
        self.failures = dict(failures)
        self.__cause__ = cause


class AuthError(Exception):
    """Authorization transport or protocol failure."""

    def __init__(self, message: str, *, base_url: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.base_url = base_url
        self.status_code = status_code


class AuthCancelled(Exception):
    """The user dismissed the authorization surface without completing it."""

    def __init__(self, message: str = "Authorization cancelled by the user", *, base_url: str | None = None) -> None:
        super().__init__(message)
        self.base_url = base_url


class InvariantViolation(RuntimeError):
    """A caller broke a contract (e.g. starting auth twice)."""
