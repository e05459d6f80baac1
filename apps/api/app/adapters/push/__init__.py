"""Push notification transports."""

from .base import PushMessage, PushTransport
from .firebase_push import FirebasePushTransport
from .log_push import LoggingPushTransport

__all__ = [
    "FirebasePushTransport",
    "LoggingPushTransport",
    "PushMessage",
    "PushTransport",
]
