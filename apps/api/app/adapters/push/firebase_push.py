"""Firebase Cloud Messaging transport adapter."""

from __future__ import annotations

import asyncio

from app.adapters.push.base import PushMessage, PushTransport
from app.errors import NotificationFailedError


def owner_topic(owner_id: str) -> str:
    """Per-user FCM topic; clients subscribe to it after sign-in."""
    return f"user-{owner_id}"


class FirebasePushTransport(PushTransport):
    """Sends messages to a per-user topic so no device-token lookup is needed."""

    async def send(self, message: PushMessage) -> None:
        await asyncio.to_thread(self._send_sync, message)

    def _send_sync(self, message: PushMessage) -> None:
        try:
            import firebase_admin
            from firebase_admin import messaging
        except ImportError as exc:  # pragma: no cover - depends on optional package
            raise NotificationFailedError("Firebase messaging is unavailable") from exc

        if not firebase_admin._apps:
            firebase_admin.initialize_app()

        fcm_message = messaging.Message(
            notification=messaging.Notification(title=message.title, body=message.body),
            data=dict(message.data),
            topic=owner_topic(message.owner_id),
        )
        try:
            messaging.send(fcm_message)
        except Exception as exc:  # pragma: no cover - provider exception surface
            raise NotificationFailedError("FCM send failed") from exc


__all__ = ["FirebasePushTransport", "owner_topic"]
