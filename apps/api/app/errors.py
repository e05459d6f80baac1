"""Application exception types."""

from typing import Any

from app.schemas.error import ErrorResponse


class ApiError(Exception):
    """Structured API error that maps directly to contract error payloads."""

    def __init__(self, status_code: int, code: str, message: str, details: dict | None = None) -> None:
        self.status_code = status_code
        self.payload = ErrorResponse(code=code, message=message, details=details)
        super().__init__(message)


class PipelineError(Exception):
    """Fatal failure of one job pipeline stage."""

    code = "PIPELINE_FAILED"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class SpawnFailedError(PipelineError):
    code = "SPAWN_FAILED"

    def __init__(self, command: str, reason: str) -> None:
        self.command = command
        super().__init__(f"Failed to spawn {command}: {reason}")


class ProbeFailedError(PipelineError):
    code = "PROBE_FAILED"


class TranscodeFailedError(PipelineError):
    """Encoder exited non-zero; carries the tail of its diagnostic stream."""

    code = "TRANSCODE_FAILED"

    def __init__(self, rendition: str, exit_code: int, diagnostic_tail: str) -> None:
        self.rendition = rendition
        self.exit_code = exit_code
        self.diagnostic_tail = diagnostic_tail
        super().__init__(f"Encoder exited with code {exit_code} for {rendition}")


class ThumbnailFailedError(PipelineError):
    code = "THUMBNAIL_FAILED"

    def __init__(self, exit_code: int, diagnostic_tail: str) -> None:
        self.exit_code = exit_code
        self.diagnostic_tail = diagnostic_tail
        super().__init__(f"Thumbnail extraction failed with code {exit_code}")


class UploadFailedError(PipelineError):
    code = "UPLOAD_FAILED"

    def __init__(self, key: str, reason: str) -> None:
        self.key = key
        super().__init__(f"Upload failed for {key}: {reason}")


class NotificationFailedError(Exception):
    """Push delivery failed. Always handled inside the dispatcher."""

    code = "NOTIFICATION_FAILED"


class JobTransitionError(Exception):
    """Attempted job status change that the lifecycle rules forbid."""

    def __init__(self, code: str, message: str, details: dict[str, Any]) -> None:
        self.code = code
        self.details = details
        super().__init__(message)


__all__ = [
    "ApiError",
    "JobTransitionError",
    "NotificationFailedError",
    "PipelineError",
    "ProbeFailedError",
    "SpawnFailedError",
    "ThumbnailFailedError",
    "TranscodeFailedError",
    "UploadFailedError",
]
