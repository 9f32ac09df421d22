"""Notification model - messages for spawn host owners and operators."""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

from fleetmon.models.enums import NotificationKind


@dataclass
class Notification:
    """A message waiting to be handed to the delivery service.

    ``on_sent`` runs after successful delivery; builders use it to record
    that a warning went out so it is not repeated on the next pass.
    """

    recipient: str
    subject: str
    body: str
    kind: NotificationKind
    host_id: Optional[str] = None
    on_sent: Optional[Callable[[], Awaitable[None]]] = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "recipient": self.recipient,
            "subject": self.subject,
            "body": self.body,
            "kind": self.kind.value,
            "host_id": self.host_id,
        }
