"""Tiered discovery loading.

Tiers are tried strictly one after another: the cache, then the data bundled
with the application, then the discovery server. Cache and bundle are only a
fast stand-in, so the server is always asked even when a stand-in succeeded.

Every `iter_tiers` call takes a new generation tag; consumers drop results of
an older generation that arrive late (see `core.services.search`).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Callable, Mapping

from core.domain.discovery import DataTier, DirectoryType, DiscoveryDirectory, parse_directory
from core.errors import LoadError, TierLoadError
from core.interfaces.discovery import DiscoverySource

logger = logging.getLogger(__name__)

STAND_IN_TIERS = (DataTier.CACHE, DataTier.APP_BUNDLE)


@dataclass(frozen=True)
class LoadResult:
    """Directory produced by one tier, tagged with its load generation."""

    generation: int
    tier: DataTier
    directory: DiscoveryDirectory
    payloads: Mapping[DirectoryType, dict[str, Any]] = field(default_factory=dict)


class DiscoveryLoader:
    def __init__(
        self,
        *,
        cache: DiscoverySource,
        bundle: DiscoverySource,
        remote: DiscoverySource,
    ) -> None:
        self._sources: dict[DataTier, DiscoverySource] = {
            DataTier.CACHE: cache,
            DataTier.APP_BUNDLE: bundle,
            DataTier.SERVER: remote,
        }
        self._generation = 0

    @property
    def generation(self) -> int:
        """Latest generation tag handed out (0 before the first load)."""

        return self._generation

    def next_generation(self) -> int:
        self._generation += 1
        return self._generation

    async def _fetch(self, tier: DataTier, directory_type: DirectoryType) -> tuple[dict[str, Any], DiscoveryDirectory]:
        try:
            payload = await self._sources[tier].read(directory_type)
            return payload, parse_directory(directory_type, payload)
        except Exception as exc:
            raise TierLoadError(tier, directory_type, exc) from exc

    async def load(self, tier: DataTier, directory_type: DirectoryType) -> DiscoveryDirectory:
        """Load and parse one feed from one tier."""

        _, directory = await self._fetch(tier, directory_type)
        return directory

    async def load_tier(
        self,
        tier: DataTier,
        *,
        include_organizations: bool,
        generation: int | None = None,
    ) -> LoadResult:
        """Server list, then (optionally) organization list, from one tier."""

        types = [DirectoryType.SERVER_LIST]
        if include_organizations:
            types.append(DirectoryType.ORGANIZATION_LIST)

        directory = DiscoveryDirectory()
        payloads: dict[DirectoryType, dict[str, Any]] = {}
        for directory_type in types:
            payload, partial = await self._fetch(tier, directory_type)
            payloads[directory_type] = payload
            directory = directory.merged_with(partial)

        return LoadResult(
            generation=self._generation if generation is None else generation,
            tier=tier,
            directory=directory,
            payloads=payloads,
        )

    async def iter_tiers(
        self,
        *,
        include_organizations: bool = True,
        on_server_failure: Callable[[BaseException], None] | None = None,
    ) -> AsyncIterator[LoadResult]:
        """Yield the first usable stand-in (if any), then the server result.

        Raises `LoadError` only when all three tiers failed. A server failure
        after a stand-in was yielded is logged and passed to
        `on_server_failure`; the stand-in stays in use.
        """

        generation = self.next_generation()
        failures: dict[DataTier, BaseException] = {}
        stand_in_used = False

        for tier in STAND_IN_TIERS:
            try:
                result = await self.load_tier(tier, include_organizations=include_organizations, generation=generation)
            except TierLoadError as exc:
                logger.info("Discovery %s tier unavailable (generation %d): %s", tier.value, generation, exc.__cause__)
                failures[tier] = exc
                continue
            logger.debug("Discovery %s tier loaded (generation %d)", tier.value, generation)
            stand_in_used = True
            yield result
            break

        try:
            result = await self.load_tier(DataTier.SERVER, include_organizations=include_organizations, generation=generation)
        except TierLoadError as exc:
            failures[DataTier.SERVER] = exc
            if not stand_in_used:
                logger.error("Discovery data unavailable from every tier (generation %d)", generation)
                raise LoadError(exc, failures) from exc
            logger.warning("Discovery server unavailable, keeping stand-in data: %s", exc.__cause__)
            if on_server_failure is not None:
                on_server_failure(exc)
            return

        logger.debug("Discovery server tier loaded (generation %d)", generation)
        yield result
