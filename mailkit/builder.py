from __future__ import annotations

"""Message builder.

A MessageBuilder collects sender, recipients, headers and body, checks the
required fields and produces exactly one immutable TransportMessage.

Lifecycle:
- Unbuilt: every setter is accepted; build() may fail and be retried.
- Built: the builder is frozen. Setters and build() raise
  MessageAlreadyBuiltError; getters keep working.
"""

import logging
import re
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from email.message import EmailMessage
from email.utils import make_msgid

from mailkit.config import MailConfig
from mailkit.email.base import MailTransport
from mailkit.email.smtp_backend import SmtpBackend
from mailkit.errors import (
    EmailValidationError,
    InvalidArgumentError,
    MailConfigurationError,
    MessageAlreadyBuiltError,
)
from mailkit.models import BuildResult, EmailAddress, RecipientType, TransportMessage, utc_now
from mailkit.render.eml import build_mime_message
from mailkit.session import MISSING_HOST_MESSAGE, MailSession
from mailkit.storage.logs import StructuredLogger

logger = logging.getLogger(__name__)

AddressInput = str | EmailAddress

DEFAULT_CONTENT_TYPE = "text/plain"
_SENDING_KINDS = (RecipientType.TO, RecipientType.CC, RecipientType.BCC)
_HEADER_NAME = re.compile(r"[\x21-\x39\x3b-\x7e]+")


class MessageBuilder:
    def __init__(self, *, config: MailConfig | None = None) -> None:
        self.config = config or MailConfig()

        self._from: EmailAddress | None = None
        self._recipients: dict[RecipientType, list[EmailAddress]] = {kind: [] for kind in RecipientType}
        self._headers: list[tuple[str, str]] = []
        self._subject: str | None = None
        self._content: str | None = None
        self._content_type: str | None = None
        self._sent_date: datetime | None = None
        self._charset: str | None = self.config.charset
        self._bounce_address: str | None = self.config.bounce_address

        self._host_name: str | None = self.config.host_name
        self._smtp_port = self.config.smtp_port
        self._ssl_smtp_port = self.config.ssl_smtp_port
        self._ssl_on_connect = self.config.ssl_on_connect
        self._start_tls_enabled = self.config.start_tls_enabled
        self._start_tls_required = self.config.start_tls_required
        self._socket_connection_timeout = self.config.socket_connection_timeout_ms
        self._socket_timeout = self.config.socket_timeout_ms
        self._username: str | None = self.config.username
        self._password: str | None = self.config.password

        self._session: MailSession | None = None
        self._message: TransportMessage | None = None

    def set_from(self, address: AddressInput, display_name: str | None = None) -> MessageBuilder:
        self._ensure_mutable()
        self._from = EmailAddress.parse(address, display_name)
        return self

    def add_to(self, addresses: AddressInput | Iterable[AddressInput], display_name: str | None = None) -> MessageBuilder:
        return self._add(RecipientType.TO, addresses, display_name)

    def add_cc(self, addresses: AddressInput | Iterable[AddressInput], display_name: str | None = None) -> MessageBuilder:
        return self._add(RecipientType.CC, addresses, display_name)

    def add_bcc(self, addresses: AddressInput | Iterable[AddressInput], display_name: str | None = None) -> MessageBuilder:
        return self._add(RecipientType.BCC, addresses, display_name)

    def add_reply_to(
        self, addresses: AddressInput | Iterable[AddressInput], display_name: str | None = None
    ) -> MessageBuilder:
        return self._add(RecipientType.REPLY_TO, addresses, display_name)

    def set_to(self, addresses: Iterable[AddressInput]) -> MessageBuilder:
        return self._replace(RecipientType.TO, addresses)

    def set_cc(self, addresses: Iterable[AddressInput]) -> MessageBuilder:
        return self._replace(RecipientType.CC, addresses)

    def set_bcc(self, addresses: Iterable[AddressInput]) -> MessageBuilder:
        return self._replace(RecipientType.BCC, addresses)

    def set_reply_to(self, addresses: Iterable[AddressInput]) -> MessageBuilder:
        return self._replace(RecipientType.REPLY_TO, addresses)

    @property
    def from_address(self) -> EmailAddress | None:
        return self._from

    @property
    def to_addresses(self) -> list[EmailAddress]:
        return list(self._recipients[RecipientType.TO])

    @property
    def cc_addresses(self) -> list[EmailAddress]:
        return list(self._recipients[RecipientType.CC])

    @property
    def bcc_addresses(self) -> list[EmailAddress]:
        return list(self._recipients[RecipientType.BCC])

    @property
    def reply_to_addresses(self) -> list[EmailAddress]:
        return list(self._recipients[RecipientType.REPLY_TO])

    def add_header(self, name: str, value: str) -> MessageBuilder:
        self._ensure_mutable()
        self._headers.append(_checked_header(name, value))
        return self

    def set_headers(self, headers: Mapping[str, str]) -> MessageBuilder:
        self._ensure_mutable()
        checked = [_checked_header(name, value) for name, value in headers.items()]
        self._headers = checked
        return self

    def get_header(self, name: str) -> str | None:
        """Most recently added value for ``name`` (case-insensitive)."""
        key = name.lower()
        for header, value in reversed(self._headers):
            if header.lower() == key:
                return value
        return None

    @property
    def headers(self) -> dict[str, str]:
        return dict(self._headers)

    def set_subject(self, subject: str | None) -> MessageBuilder:
        self._ensure_mutable()
        self._subject = subject
        return self

    def set_content(self, content: str, content_type: str | None = None) -> MessageBuilder:
        self._ensure_mutable()
        self._content = content
        self._content_type = content_type
        return self

    def set_msg(self, msg: str) -> MessageBuilder:
        if not msg:
            raise InvalidArgumentError("Invalid message supplied")
        return self.set_content(msg, DEFAULT_CONTENT_TYPE)

    def set_charset(self, charset: str | None) -> MessageBuilder:
        self._ensure_mutable()
        self._charset = charset
        return self

    def set_bounce_address(self, address: str | None) -> MessageBuilder:
        self._ensure_mutable()
        self._bounce_address = EmailAddress.parse(address).address if address else None
        return self

    def set_sent_date(self, sent_date: datetime | None) -> MessageBuilder:
        self._ensure_mutable()
        if sent_date is not None and sent_date.tzinfo is None:
            sent_date = sent_date.replace(tzinfo=timezone.utc)
        self._sent_date = sent_date
        return self

    @property
    def subject(self) -> str | None:
        return self._subject

    @property
    def content(self) -> str | None:
        return self._content

    @property
    def content_type(self) -> str | None:
        return self._content_type

    @property
    def charset(self) -> str | None:
        return self._charset

    @property
    def bounce_address(self) -> str | None:
        return self._bounce_address

    @property
    def sent_date(self) -> datetime:
        """Explicit sent date, or the current time when none was set."""
        return self._sent_date or utc_now()

    def set_host_name(self, host_name: str | None) -> MessageBuilder:
        self._ensure_mutable()
        self._host_name = host_name
        self._session = None
        return self

    def set_smtp_port(self, port: int) -> MessageBuilder:
        self._ensure_mutable()
        self._smtp_port = _checked_port(port)
        self._session = None
        return self

    def set_ssl_smtp_port(self, port: int) -> MessageBuilder:
        self._ensure_mutable()
        self._ssl_smtp_port = _checked_port(port)
        self._session = None
        return self

    def set_ssl_on_connect(self, enabled: bool) -> MessageBuilder:
        self._ensure_mutable()
        self._ssl_on_connect = enabled
        self._session = None
        return self

    def set_start_tls_enabled(self, enabled: bool) -> MessageBuilder:
        self._ensure_mutable()
        self._start_tls_enabled = enabled
        self._session = None
        return self

    def set_start_tls_required(self, required: bool) -> MessageBuilder:
        self._ensure_mutable()
        self._start_tls_required = required
        if required:
            self._start_tls_enabled = True
        self._session = None
        return self

    def set_authentication(self, username: str, password: str) -> MessageBuilder:
        self._ensure_mutable()
        self._username = username
        self._password = password
        self._session = None
        return self

    def set_socket_connection_timeout(self, timeout_ms: int) -> MessageBuilder:
        self._ensure_mutable()
        self._socket_connection_timeout = _checked_timeout(timeout_ms)
        self._session = None
        return self

    def set_socket_timeout(self, timeout_ms: int) -> MessageBuilder:
        self._ensure_mutable()
        self._socket_timeout = _checked_timeout(timeout_ms)
        self._session = None
        return self

    @property
    def host_name(self) -> str | None:
        return self._host_name

    @property
    def smtp_port(self) -> int:
        return self._smtp_port

    def get_socket_connection_timeout(self) -> int:
        return self._socket_connection_timeout

    def get_socket_timeout(self) -> int:
        return self._socket_timeout

    def get_mail_session(self) -> MailSession:
        if self._session is not None:
            return self._session
        host = (self._host_name or "").strip()
        if not host:
            raise MailConfigurationError(MISSING_HOST_MESSAGE, field="host_name")
        self._session = MailSession(
            host=host,
            port=self._smtp_port,
            ssl_port=self._ssl_smtp_port,
            ssl_on_connect=self._ssl_on_connect,
            start_tls_enabled=self._start_tls_enabled,
            start_tls_required=self._start_tls_required,
            connection_timeout_ms=self._socket_connection_timeout,
            timeout_ms=self._socket_timeout,
            username=self._username,
            password=self._password,
        )
        logger.debug("created mail session for %s", self._session.url)
        return self._session

    @property
    def is_built(self) -> bool:
        return self._message is not None

    @property
    def message(self) -> TransportMessage | None:
        return self._message

    def build(self) -> TransportMessage:
        if self._message is not None:
            raise MessageAlreadyBuiltError("message already built")
        if self._from is None:
            raise EmailValidationError("missing From address", field="from")
        if not any(self._recipients[kind] for kind in _SENDING_KINDS):
            raise EmailValidationError("missing recipient", field="to")

        message = TransportMessage(
            message_id=make_msgid(domain=self._message_id_domain()),
            from_address=self._from,
            to=tuple(self._recipients[RecipientType.TO]),
            cc=tuple(self._recipients[RecipientType.CC]),
            bcc=tuple(self._recipients[RecipientType.BCC]),
            reply_to=tuple(self._recipients[RecipientType.REPLY_TO]),
            subject=self._subject,
            headers=tuple(self._headers),
            content=self._content or "",
            content_type=self._content_type or DEFAULT_CONTENT_TYPE,
            charset=self._charset,
            sent_date=self.sent_date,
            bounce_address=self._bounce_address,
            host_name=self._host_name,
        )
        self._message = message
        logger.debug(
            "built message %s with %d recipients",
            message.message_id,
            len(message.envelope_recipients()),
        )
        return message

    def try_build(self) -> BuildResult:
        """Like build(), but report missing fields in the result.

        Building twice still raises MessageAlreadyBuiltError.
        """
        try:
            message = self.build()
        except EmailValidationError as exc:
            return BuildResult(ok=False, error=str(exc), error_field=exc.field)
        return BuildResult(ok=True, message=message)

    def get_mime_message(self) -> EmailMessage | None:
        if self._message is None:
            return None
        return build_mime_message(self._message)

    def send(self, transport: MailTransport | None = None) -> str:
        """Build the message and hand it to ``transport`` (SMTP by default).

        Returns the Message-ID.
        """
        if transport is None:
            transport = SmtpBackend(
                session=self.get_mail_session(),
                logger=StructuredLogger(path=self.config.log_dir / "mail.jsonl"),
            )
        message = self.build()
        transport.send_message(message=message)
        return message.message_id

    def _ensure_mutable(self) -> None:
        if self._message is not None:
            raise MessageAlreadyBuiltError("message already built")

    def _add(
        self,
        kind: RecipientType,
        addresses: AddressInput | Iterable[AddressInput],
        display_name: str | None,
    ) -> MessageBuilder:
        self._ensure_mutable()
        parsed = _parse_addresses(addresses, display_name)
        self._recipients[kind].extend(parsed)
        return self

    def _replace(self, kind: RecipientType, addresses: Iterable[AddressInput]) -> MessageBuilder:
        self._ensure_mutable()
        self._recipients[kind] = _parse_addresses(addresses, None)
        return self

    def _message_id_domain(self) -> str:
        if self._host_name and self._host_name.strip():
            return self._host_name.strip()
        if self._from is not None and "@" in self._from.address:
            return self._from.address.rpartition("@")[2] or "localhost"
        return "localhost"


def _parse_addresses(
    addresses: AddressInput | Iterable[AddressInput],
    display_name: str | None,
) -> list[EmailAddress]:
    if isinstance(addresses, (str, EmailAddress)) or addresses is None:
        return [EmailAddress.parse(addresses, display_name)]
    items = list(addresses)
    if not items:
        raise InvalidArgumentError("address list cannot be empty")
    if display_name is not None and len(items) > 1:
        raise InvalidArgumentError("display_name can only be used with a single address")
    return [EmailAddress.parse(item, display_name) for item in items]


def _checked_header(name: str, value: str) -> tuple[str, str]:
    if not name or not name.strip():
        raise InvalidArgumentError("header name cannot be empty")
    name = name.strip()
    # RFC 5322 field names: printable ASCII except colon.
    if not _HEADER_NAME.fullmatch(name):
        raise InvalidArgumentError(f"invalid header name: {name!r}")
    if name.lower().startswith("content-") or name.lower() == "mime-version":
        raise InvalidArgumentError(f"{name} is controlled by set_content()")
    if not value or not value.strip():
        raise InvalidArgumentError("header value cannot be empty")
    # MIME headers cannot carry raw line breaks; fold them into spaces.
    return name, " ".join(line.strip() for line in value.splitlines())


def _checked_port(port: int) -> int:
    if port < 1 or port > 65535:
        raise InvalidArgumentError("port must be in 1..65535")
    return port


def _checked_timeout(timeout_ms: int) -> int:
    if timeout_ms <= 0:
        raise InvalidArgumentError("timeout must be positive")
    return timeout_ms
