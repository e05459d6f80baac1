"""Object storage adapters."""

from .base import ObjectStorage, StoredObject
from .memory import InMemoryObjectStorage
from .s3 import S3ObjectStorage

__all__ = [
    "InMemoryObjectStorage",
    "ObjectStorage",
    "S3ObjectStorage",
    "StoredObject",
]
