"""Best-effort uploader notifications."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from app.adapters.push import PushMessage, PushTransport
from app.core.logging_safety import safe_log_identifier

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SuccessPayload:
    job_id: str
    hls_url: str
    thumbnail_url: str
    caption: str | None = None


class NotificationDispatcher:
    """Sends job outcome messages. Never raises into the pipeline."""

    def __init__(self, transport: PushTransport) -> None:
        self._transport = transport

    async def notify_success(self, owner_id: str, payload: SuccessPayload) -> bool:
        message = PushMessage(
            owner_id=owner_id,
            title="Reel posted",
            body="Your reel is now live with adaptive streaming!",
            data={
                "type": "reel_posted",
                "videoId": payload.job_id,
                "hlsUrl": payload.hls_url,
                "thumbnailUrl": payload.thumbnail_url,
                "caption": payload.caption or "",
            },
        )
        return await self._deliver(message)

    async def notify_failure(self, owner_id: str, job_id: str, error_message: str) -> bool:
        message = PushMessage(
            owner_id=owner_id,
            title="Upload failed",
            body="Failed to process your reel. Please try again.",
            data={"type": "reel_failed", "videoId": job_id, "error": error_message},
        )
        return await self._deliver(message)

    async def _deliver(self, message: PushMessage) -> bool:
        try:
            await self._transport.send(message)
        except Exception as exc:
            logger.warning(
                "notify.failed owner_id=%s type=%s reason=%s",
                safe_log_identifier(message.owner_id, prefix="oid"),
                message.data.get("type"),
                type(exc).__name__,
            )
            return False
        return True
