"""Process-wide "has any server been added" flag with explicit subscriptions.

Only the server store writes the flag. Everyone else reads `has_servers` and
subscribes; each `set_has_servers` call reaches every subscriber once,
synchronously, in subscription order.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable

logger = logging.getLogger(__name__)

HasServersCallback = Callable[[bool], None]


@dataclass(frozen=True)
class SubscriptionHandle:
    id: int


class ServerPresenceNotifier:
    def __init__(self, has_servers: bool = False) -> None:
        self._has_servers = has_servers
        self._subscribers: dict[SubscriptionHandle, HasServersCallback] = {}
        self._ids = itertools.count(1)

    @property
    def has_servers(self) -> bool:
        return self._has_servers

    def set_has_servers(self, value: bool) -> None:
        self._has_servers = bool(value)
        logger.debug("has_servers -> %s (%d subscriber(s))", self._has_servers, len(self._subscribers))
        # Snapshot: callbacks may unsubscribe while we iterate.
        for callback in list(self._subscribers.values()):
            callback(self._has_servers)

    def subscribe(self, callback: HasServersCallback) -> SubscriptionHandle:
        handle = SubscriptionHandle(next(self._ids))
        self._subscribers[handle] = callback
        return handle

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        self._subscribers.pop(handle, None)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)


@lru_cache(maxsize=1)
def shared_notifier() -> ServerPresenceNotifier:
    """The notifier for this process (one application session)."""

    return ServerPresenceNotifier()
