from __future__ import annotations

"""Value models shared by the builder, renderers and backends.

Hierarchy:
- EmailAddress: one mailbox (address + optional display name)
- TransportMessage: frozen snapshot produced by MessageBuilder.build()
- BuildResult: non-raising outcome of MessageBuilder.try_build()

All models use Pydantic for validation and serialization.
"""

from datetime import datetime, timezone
from email.utils import formataddr, parseaddr
from enum import Enum

from pydantic import BaseModel, ConfigDict, field_validator

from mailkit.errors import InvalidArgumentError


class RecipientType(str, Enum):
    """Recipient list kinds; values are the header names they render to."""
    TO = "To"
    CC = "Cc"
    BCC = "Bcc"
    REPLY_TO = "Reply-To"


class EmailAddress(BaseModel):
    model_config = ConfigDict(frozen=True)

    address: str
    display_name: str | None = None

    @field_validator("address")
    @classmethod
    def _address_not_empty(cls, value: str) -> str:
        v = value.strip()
        if not v:
            raise ValueError("address cannot be empty")
        return v

    @classmethod
    def parse(cls, value: str | EmailAddress, display_name: str | None = None) -> EmailAddress:
        """Coerce a string like ``a@b.com`` or ``Name <a@b.com>`` into an address.

        Syntax checking beyond "not empty" is left to the MIME layer.
        """
        if isinstance(value, EmailAddress):
            if display_name is None:
                return value
            return value.model_copy(update={"display_name": display_name})
        if value is None or not str(value).strip():
            raise InvalidArgumentError("email address cannot be empty")
        text = str(value).strip()
        parsed_name, parsed_addr = parseaddr(text)
        if "<" in text and parsed_addr:
            text = parsed_addr
            if display_name is None and parsed_name:
                display_name = parsed_name
        return cls(address=text, display_name=display_name or None)

    def __str__(self) -> str:
        if self.display_name:
            return formataddr((self.display_name, self.address))
        return self.address


class TransportMessage(BaseModel):
    """Immutable, transport-ready message.

    Created only by a successful MessageBuilder.build(); the tuples make the
    snapshot independent from later changes to any builder.
    """
    model_config = ConfigDict(frozen=True)

    message_id: str
    from_address: EmailAddress
    to: tuple[EmailAddress, ...] = ()
    cc: tuple[EmailAddress, ...] = ()
    bcc: tuple[EmailAddress, ...] = ()
    reply_to: tuple[EmailAddress, ...] = ()
    subject: str | None = None
    headers: tuple[tuple[str, str], ...] = ()
    content: str = ""
    content_type: str = "text/plain"
    charset: str | None = None
    sent_date: datetime
    bounce_address: str | None = None
    host_name: str | None = None

    def recipients(self, kind: RecipientType) -> tuple[EmailAddress, ...]:
        return {
            RecipientType.TO: self.to,
            RecipientType.CC: self.cc,
            RecipientType.BCC: self.bcc,
            RecipientType.REPLY_TO: self.reply_to,
        }[kind]

    def get_header(self, name: str) -> list[str]:
        key = name.lower()
        return [value for header, value in self.headers if header.lower() == key]

    @property
    def envelope_sender(self) -> str:
        return self.bounce_address or self.from_address.address

    def envelope_recipients(self) -> list[str]:
        return [a.address for a in (*self.to, *self.cc, *self.bcc)]


class BuildResult(BaseModel):
    ok: bool
    message: TransportMessage | None = None
    error: str | None = None
    error_field: str | None = None


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat()
