"""S3-compatible object storage (AWS S3, DigitalOcean Spaces, MinIO)."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import boto3
from botocore.config import Config as BotoConfig

from app.adapters.storage.base import ObjectStorage
from app.core.config import Settings


def get_s3_client(settings: Settings) -> Any:
    """SDK client for server-side uploads."""
    session = boto3.session.Session(
        aws_access_key_id=settings.s3_access_key,
        aws_secret_access_key=settings.s3_secret_key,
        region_name=settings.s3_region,
    )
    return session.client(
        "s3",
        endpoint_url=settings.s3_endpoint_url,
        config=BotoConfig(
            s3={"addressing_style": "path"},
            signature_version="s3v4",
        ),
    )


class S3ObjectStorage(ObjectStorage):
    """boto3-backed storage. Calls run in a worker thread to keep the event loop free."""

    def __init__(self, client: Any, bucket: str, *, acl: str | None = "public-read") -> None:
        self._client = client
        self._bucket = bucket
        self._acl = acl

    @classmethod
    def from_settings(cls, settings: Settings) -> S3ObjectStorage:
        return cls(get_s3_client(settings), settings.s3_bucket, acl=settings.s3_object_acl)

    def extra_args(self, *, content_type: str, cache_control: str) -> dict[str, str]:
        extra = {"ContentType": content_type, "CacheControl": cache_control}
        if self._acl:
            extra["ACL"] = self._acl
        return extra

    async def put_file(self, key: str, path: Path, *, content_type: str, cache_control: str) -> None:
        await asyncio.to_thread(
            self._client.upload_file,
            str(path),
            self._bucket,
            key,
            ExtraArgs=self.extra_args(content_type=content_type, cache_control=cache_control),
        )

    async def prune(self, prefix: str, keep: set[str]) -> int:
        return await asyncio.to_thread(self._prune_sync, prefix, keep)

    def _prune_sync(self, prefix: str, keep: set[str]) -> int:
        deleted = 0
        paginator = self._client.get_paginator("list_objects_v2")
        for page in paginator.paginate(Bucket=self._bucket, Prefix=prefix):
            contents = [item for item in page.get("Contents") or [] if item["Key"] not in keep]
            if not contents:
                continue
            self._client.delete_objects(
                Bucket=self._bucket,
                Delete={"Objects": [{"Key": item["Key"]} for item in contents]},
            )
            deleted += len(contents)
        return deleted


__all__ = ["S3ObjectStorage", "get_s3_client"]
