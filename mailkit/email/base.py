from __future__ import annotations

from typing import Protocol

from mailkit.models import TransportMessage


class MailTransport(Protocol):
    def send_message(self, *, message: TransportMessage) -> None:
        """Deliver an already built message."""
