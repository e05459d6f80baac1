"""Publishing a finished HLS package to object storage."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path

from app.adapters.storage import ObjectStorage
from app.domain.renditions import MASTER_PLAYLIST_NAME
from app.domain.storage_layout import object_key, public_url
from app.errors import UploadFailedError

logger = logging.getLogger(__name__)

MANIFEST_CACHE_CONTROL = "public, max-age=0"
IMMUTABLE_CACHE_CONTROL = "public, max-age=31536000"
DEFAULT_CONTENT_TYPE = "application/octet-stream"

_CONTENT_TYPES: dict[str, str] = {
    ".m3u8": "application/vnd.apple.mpegurl",
    ".ts": "video/MP2T",
    ".mp4": "video/mp4",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
}


def content_type_for(file_name: str) -> str:
    return _CONTENT_TYPES.get(Path(file_name).suffix.lower(), DEFAULT_CONTENT_TYPE)


def cache_control_for(file_name: str) -> str:
    # Playlists change on re-encode; everything else lives under a job-scoped key.
    if Path(file_name).suffix.lower() == ".m3u8":
        return MANIFEST_CACHE_CONTROL
    return IMMUTABLE_CACHE_CONTROL


class UploadClient:
    """Uploads one job's output directory, one file at a time.

    Each job gets its own instance; separate jobs upload concurrently.
    """

    def __init__(self, storage: ObjectStorage, cdn_base_url: str) -> None:
        self._storage = storage
        self._cdn_base_url = cdn_base_url

    async def upload_directory(
        self,
        local_dir: Path,
        remote_prefix: str,
        on_progress: Callable[[float], None] | None = None,
    ) -> str:
        files = sorted(path for path in local_dir.iterdir() if path.is_file())
        total = len(files)
        logger.info("upload.started prefix=%s files=%s", remote_prefix, total)

        uploaded_keys: set[str] = set()
        for index, path in enumerate(files, start=1):
            key = object_key(remote_prefix, path.name)
            try:
                await self._storage.put_file(
                    key,
                    path,
                    content_type=content_type_for(path.name),
                    cache_control=cache_control_for(path.name),
                )
            except Exception as exc:
                logger.warning("upload.failed key=%s reason=%s", key, type(exc).__name__)
                raise UploadFailedError(key, str(exc) or type(exc).__name__) from exc
            uploaded_keys.add(key)
            if on_progress is not None:
                on_progress(index / total * 100)

        await self._prune_stale(remote_prefix, uploaded_keys)

        url = public_url(self._cdn_base_url, object_key(remote_prefix, MASTER_PLAYLIST_NAME))
        logger.info("upload.completed prefix=%s files=%s", remote_prefix, total)
        return url

    async def _prune_stale(self, remote_prefix: str, keep: set[str]) -> None:
        """Remove objects a previous encode under the same prefix left behind."""
        try:
            removed = await self._storage.prune(f"{remote_prefix.rstrip('/')}/", keep)
        except Exception as exc:
            logger.warning("upload.prune_failed prefix=%s reason=%s", remote_prefix, type(exc).__name__)
            return
        if removed:
            logger.info("upload.pruned prefix=%s removed=%s", remote_prefix, removed)
