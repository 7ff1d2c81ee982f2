"""Discovery source contract.

Why Protocol:
- Cache, bundled data and the remote discovery server are interchangeable
  for the loader; each one only has to hand back a raw feed.
- Tests substitute in-memory sources without touching files or HTTP.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from core.domain.discovery import DirectoryType


@runtime_checkable
class DiscoverySource(Protocol):
    """Minimal contract for one discovery tier.

    Design rules:
    - `read` is async because it typically does I/O.
    - A missing feed raises `core.errors.DiscoveryNotFound`; any other failure
      raises whatever the underlying I/O raised.
    """

    async def read(self, directory_type: DirectoryType) -> dict[str, Any]:
        """Return the raw JSON document of the requested feed."""

        ...
