"""External process adapters."""

from .registry import ProcessRegistry, get_process_registry
from .runner import ProcessChunk, ProcessResult, ProcessRunner

__all__ = [
    "ProcessChunk",
    "ProcessRegistry",
    "ProcessResult",
    "ProcessRunner",
    "get_process_registry",
]
