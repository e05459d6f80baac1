"""Placeholder transport that records messages in the service log."""

import logging

from app.adapters.push.base import PushMessage, PushTransport
from app.core.logging_safety import safe_log_identifier

logger = logging.getLogger(__name__)


class LoggingPushTransport(PushTransport):
    async def send(self, message: PushMessage) -> None:
        logger.info(
            "push.logged owner_id=%s type=%s job_id=%s",
            safe_log_identifier(message.owner_id, prefix="oid"),
            message.data.get("type"),
            message.data.get("videoId"),
        )


__all__ = ["LoggingPushTransport"]
