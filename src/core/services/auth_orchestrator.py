"""Single-flight, cancellable authorization against one server.

State machine::

    idle -> requesting -> authorized | cancelled | failed -> idle

A second `start_auth` while requesting is a caller bug and fails fast; it is
never queued. Cancellation (by the transport reporting a dismissed browser,
or by `cancel()`) always ends in `cancelled` and surfaces as
`AuthCancelled`, which callers check first to avoid showing an error.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable

from core.domain.auth import AuthPhase, AuthState, WayfSkippingInfo
from core.errors import AuthCancelled, AuthError, InvariantViolation
from core.interfaces.auth import AuthTransport

logger = logging.getLogger(__name__)


class AuthOrchestrator:
    def __init__(
        self,
        transport: AuthTransport,
        *,
        on_phase_change: Callable[[AuthPhase], None] | None = None,
    ) -> None:
        self._transport = transport
        self._on_phase_change = on_phase_change
        self._phase = AuthPhase.IDLE
        self._last_outcome: AuthPhase | None = None
        self._task: asyncio.Future[AuthState] | None = None
        self._cancel_requested = False

    @property
    def phase(self) -> AuthPhase:
        return self._phase

    @property
    def last_outcome(self) -> AuthPhase | None:
        """Terminal phase of the previous attempt (`None` before the first)."""

        return self._last_outcome

    @property
    def is_busy(self) -> bool:
        return self._phase is AuthPhase.REQUESTING

    def _set_phase(self, phase: AuthPhase) -> None:
        self._phase = phase
        if self._on_phase_change is not None:
            self._on_phase_change(phase)

    async def start_auth(
        self,
        base_url: str,
        wayf_skipping_info: WayfSkippingInfo | None = None,
    ) -> AuthState:
        if self._phase is AuthPhase.REQUESTING:
            raise InvariantViolation("start_auth() called while an authorization is already in flight")

        self._cancel_requested = False
        self._set_phase(AuthPhase.REQUESTING)
        logger.info("Starting authorization for %s", base_url)
        task = asyncio.ensure_future(self._transport.authorize(base_url, wayf_skipping_info))
        self._task = task

        outcome = AuthPhase.FAILED
        try:
            auth_state = await task
        except AuthCancelled:
            outcome = AuthPhase.CANCELLED
            logger.info("Authorization for %s cancelled by the user", base_url)
            raise
        except asyncio.CancelledError:
            outcome = AuthPhase.CANCELLED
            if self._cancel_requested:
                logger.info("Authorization for %s cancelled", base_url)
                raise AuthCancelled(base_url=base_url) from None
            # The caller's own task is being cancelled: let asyncio see it.
            raise
        except Exception as exc:
            if self._cancel_requested:
                outcome = AuthPhase.CANCELLED
                logger.info("Authorization for %s cancelled (%s)", base_url, exc)
                raise AuthCancelled(base_url=base_url) from exc
            logger.error("Authorization for %s failed: %s", base_url, exc)
            if isinstance(exc, AuthError):
                raise
            raise AuthError(str(exc) or exc.__class__.__name__, base_url=base_url) from exc
        else:
            if self._cancel_requested:
                # The transport ignored the cancellation and finished anyway.
                outcome = AuthPhase.CANCELLED
                logger.info("Authorization for %s cancelled", base_url)
                raise AuthCancelled(base_url=base_url)
            outcome = AuthPhase.AUTHORIZED
            logger.info("Authorized for %s", base_url)
            return auth_state
        finally:
            self._task = None
            self._last_outcome = outcome
            self._set_phase(outcome)
            self._set_phase(AuthPhase.IDLE)

    def cancel(self) -> bool:
        """Cancel the in-flight authorization; `False` when there is none."""

        if self._task is None or self._task.done():
            return False
        self._cancel_requested = True
        self._task.cancel()
        return True

    @staticmethod
    def is_user_cancelled_error(error: BaseException) -> bool:
        return isinstance(error, AuthCancelled)
