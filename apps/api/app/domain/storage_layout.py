"""Deterministic object-storage key layout for published HLS packages.

Every URL handed out at intake is derived here, and the upload client
publishes to exactly the same keys, so the prediction holds once the job
completes.
"""

from app.domain.renditions import MASTER_PLAYLIST_NAME, THUMBNAIL_NAME

HLS_ROOT = "reels/hls"


def hls_prefix(job_id: str) -> str:
    return f"{HLS_ROOT}/{job_id}"


def object_key(prefix: str, file_name: str) -> str:
    return f"{prefix.rstrip('/')}/{file_name}"


def public_url(cdn_base: str, key: str) -> str:
    return f"{cdn_base.rstrip('/')}/{key.lstrip('/')}"


def hls_url(cdn_base: str, job_id: str) -> str:
    return public_url(cdn_base, object_key(hls_prefix(job_id), MASTER_PLAYLIST_NAME))


def thumbnail_url(cdn_base: str, job_id: str) -> str:
    return public_url(cdn_base, object_key(hls_prefix(job_id), THUMBNAIL_NAME))
