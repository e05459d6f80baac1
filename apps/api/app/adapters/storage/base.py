"""Object storage interfaces."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True, slots=True)
class StoredObject:
    key: str
    body: bytes
    content_type: str
    cache_control: str
    acl: str | None = None


class ObjectStorage(ABC):
    """Provider-neutral put-object interface (any S3-compatible store)."""

    @abstractmethod
    async def put_file(self, key: str, path: Path, *, content_type: str, cache_control: str) -> None:
        """Upload ``path`` to ``key``, replacing any existing object."""

    @abstractmethod
    async def prune(self, prefix: str, keep: set[str]) -> int:
        """Delete objects under ``prefix`` whose key is not in ``keep``; returns the count."""


__all__ = ["ObjectStorage", "StoredObject"]
