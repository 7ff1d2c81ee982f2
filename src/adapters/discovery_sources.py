"""Discovery sources: cache, bundled data, discovery server.

Each class implements `core.interfaces.discovery.DiscoverySource`. Files are
plain JSON feeds named after the directory type (`server_list.json`,
`organization_list.json`).
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Mapping

from adapters.http_client import ClientFactory, build_async_client, fetch_json
from core.config import AppSettings
from core.domain.discovery import DirectoryType
from core.errors import DiscoveryNotFound

logger = logging.getLogger(__name__)

BUNDLED_DATA_DIR = Path(__file__).resolve().parent / "data"


def _read_feed(path: Path) -> dict[str, Any]:
    if not path.is_file():
        raise DiscoveryNotFound(f"No discovery data at {path}")
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Discovery feed {path} is not a JSON object")
    return data


class FileCacheSource:
    """Last server-tier feeds, written back by the caller after a refresh."""

    def __init__(self, cache_dir: Path) -> None:
        self.cache_dir = Path(cache_dir)

    def path_for(self, directory_type: DirectoryType) -> Path:
        return self.cache_dir / directory_type.filename

    async def read(self, directory_type: DirectoryType) -> dict[str, Any]:
        return _read_feed(self.path_for(directory_type))

    def write(self, directory_type: DirectoryType, payload: Mapping[str, Any]) -> Path:
        """Atomically replace the cached feed."""

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        target = self.path_for(directory_type)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{directory_type.value}.", dir=self.cache_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, ensure_ascii=False)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        logger.debug("Cached %s at %s", directory_type.value, target)
        return target

    def write_all(self, payloads: Mapping[DirectoryType, Mapping[str, Any]]) -> None:
        for directory_type, payload in payloads.items():
            self.write(directory_type, payload)


class BundledSource:
    """Feeds shipped with the application; stale but always present."""

    def __init__(self, data_dir: Path | None = None) -> None:
        self.data_dir = Path(data_dir) if data_dir is not None else BUNDLED_DATA_DIR

    async def read(self, directory_type: DirectoryType) -> dict[str, Any]:
        return _read_feed(self.data_dir / directory_type.filename)


class RemoteSource:
    """Authoritative feeds from the discovery server."""

    def __init__(self, settings: AppSettings | None = None, *, client_factory: ClientFactory | None = None) -> None:
        self._settings = settings or AppSettings()
        self._client_factory = client_factory or (lambda: build_async_client(self._settings))

    def url_for(self, directory_type: DirectoryType) -> str:
        return self._settings.discovery_base_url + directory_type.filename

    async def read(self, directory_type: DirectoryType) -> dict[str, Any]:
        url = self.url_for(directory_type)
        async with self._client_factory() as client:
            data = await fetch_json(client, url)
        if not isinstance(data, dict):
            raise ValueError(f"Discovery feed {url} is not a JSON object")
        return data
