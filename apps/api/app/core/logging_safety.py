"""Utilities for safe structured logging fields."""

from __future__ import annotations

import hashlib
from typing import Any

DIAGNOSTIC_TAIL_CHARS = 500


def safe_log_identifier(value: Any, *, prefix: str) -> str:
    """Return a deterministic non-reversible token for log correlation fields."""
    text = str(value or "").strip()
    if not text:
        return f"{prefix}-missing"

    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()[:12]
    return f"{prefix}-{digest}"


def diagnostic_tail(output: str | bytes, limit: int = DIAGNOSTIC_TAIL_CHARS) -> str:
    """Keep the trailing part of a process diagnostic stream for error reports."""
    if isinstance(output, bytes):
        output = output.decode("utf-8", errors="replace")
    text = output.strip()
    if len(text) <= limit:
        return text
    return text[-limit:]
