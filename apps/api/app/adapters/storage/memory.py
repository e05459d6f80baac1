"""Dict-backed object storage for local development and tests."""

from __future__ import annotations

import asyncio
from pathlib import Path

from app.adapters.storage.base import ObjectStorage, StoredObject


class InMemoryObjectStorage(ObjectStorage):
    """Keeps uploaded objects in a dict keyed by object key.

    ``fail_on_keys`` lets callers simulate a provider rejecting specific puts.
    """

    def __init__(self, *, acl: str | None = "public-read") -> None:
        self.objects: dict[str, StoredObject] = {}
        self.put_log: list[str] = []
        self.fail_on_keys: set[str] = set()
        self._acl = acl

    async def put_file(self, key: str, path: Path, *, content_type: str, cache_control: str) -> None:
        self.put_log.append(key)
        if key in self.fail_on_keys:
            raise OSError(f"Injected put failure for {key}")
        body = await asyncio.to_thread(path.read_bytes)
        self.objects[key] = StoredObject(
            key=key,
            body=body,
            content_type=content_type,
            cache_control=cache_control,
            acl=self._acl,
        )

    async def prune(self, prefix: str, keep: set[str]) -> int:
        doomed = [key for key in self.objects if key.startswith(prefix) and key not in keep]
        for key in doomed:
            del self.objects[key]
        return len(doomed)

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(key for key in self.objects if key.startswith(prefix))


__all__ = ["InMemoryObjectStorage"]
