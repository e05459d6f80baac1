"""Push delivery interfaces."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class PushMessage:
    owner_id: str
    title: str
    body: str
    data: dict[str, str] = field(default_factory=dict)


class PushTransport(ABC):
    """Provider-neutral delivery of one message to one user."""

    @abstractmethod
    async def send(self, message: PushMessage) -> None:
        """Deliver ``message``; raise on provider failure."""


__all__ = ["PushMessage", "PushTransport"]
