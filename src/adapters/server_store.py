"""JSON server store.

Keeps the servers the user added and their authorization state in one JSON
file (mode 0600). It is the only writer of the server-presence flag: the
flag is refreshed when the store is opened and after every mutation.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from core.domain.auth import AuthState
from core.services.server_presence import ServerPresenceNotifier, shared_notifier

logger = logging.getLogger(__name__)


class StoredServer(BaseModel):
    base_url: str = Field(..., min_length=1)
    org_id: str | None = Field(
        default=None,
        description="Set for the Secure Internet server (organization id).",
    )
    auth_state: AuthState | None = None

    @property
    def is_secure_internet(self) -> bool:
        return self.org_id is not None


class StoreFile(BaseModel):
    simple_servers: list[StoredServer] = Field(default_factory=list)
    secure_internet: StoredServer | None = None


class JsonServerStore:
    def __init__(self, path: Path, notifier: ServerPresenceNotifier | None = None) -> None:
        self.path = Path(path)
        self._notifier = notifier or shared_notifier()
        self._data = self._load()
        self._notifier.set_has_servers(self.has_servers)

    def _load(self) -> StoreFile:
        if not self.path.exists():
            return StoreFile()
        return StoreFile.model_validate_json(self.path.read_text(encoding="utf-8"))

    def _save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = self._data.model_dump(mode="json")
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, sort_keys=True)
                handle.write("\n")
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        self._notifier.set_has_servers(self.has_servers)

    @property
    def has_servers(self) -> bool:
        return bool(self._data.simple_servers or self._data.secure_internet)

    def servers(self) -> list[StoredServer]:
        out = list(self._data.simple_servers)
        if self._data.secure_internet is not None:
            out.append(self._data.secure_internet)
        return out

    def add_simple_server(self, base_url: str, auth_state: AuthState) -> None:
        kept = [s for s in self._data.simple_servers if s.base_url != base_url]
        kept.append(StoredServer(base_url=base_url, auth_state=auth_state))
        self._data.simple_servers = kept
        logger.info("Stored server %s", base_url)
        self._save()

    def add_secure_internet_server(self, base_url: str, org_id: str, auth_state: AuthState) -> None:
        # Only one Secure Internet home at a time.
        self._data.secure_internet = StoredServer(base_url=base_url, org_id=org_id, auth_state=auth_state)
        logger.info("Stored Secure Internet server %s for %s", base_url, org_id)
        self._save()

    def remove_server(self, base_url: str) -> bool:
        before = len(self.servers())
        self._data.simple_servers = [s for s in self._data.simple_servers if s.base_url != base_url]
        if self._data.secure_internet is not None and self._data.secure_internet.base_url == base_url:
            self._data.secure_internet = None
        removed = len(self.servers()) != before
        if removed:
            self._save()
        return removed

    def export(self) -> dict[str, Any]:
        """Store contents without tokens."""

        secure = self._data.secure_internet
        return {
            "simple_servers": [s.model_dump(mode="json", exclude={"auth_state"}) for s in self._data.simple_servers],
            "secure_internet": secure.model_dump(mode="json", exclude={"auth_state"}) if secure else None,
        }
