from __future__ import annotations

from email.message import EmailMessage
from email.policy import SMTP
from email.utils import format_datetime
from pathlib import Path

from mailkit.models import RecipientType, TransportMessage

DEFAULT_CHARSET = "utf-8"


def build_mime_message(message: TransportMessage, *, include_bcc: bool = True) -> EmailMessage:
    msg = EmailMessage()
    if message.subject is not None:
        msg["Subject"] = message.subject
    msg["From"] = str(message.from_address)
    for kind in RecipientType:
        addresses = message.recipients(kind)
        if not addresses or (kind is RecipientType.BCC and not include_bcc):
            continue
        msg[kind.value] = ", ".join(str(a) for a in addresses)
    msg["Date"] = format_datetime(message.sent_date)
    msg["Message-ID"] = message.message_id

    # Custom headers replace the standard ones above and any single-use
    # header (Reply-To, Sender, References, ...) keeps its last value.
    standard = {name.lower() for name in msg.keys()}
    for name, value in message.headers:
        single_use = msg.policy.header_max_count(name) is not None
        if name in msg and (name.lower() in standard or single_use):
            msg.replace_header(name, value)
        else:
            msg[name] = value

    _set_body(msg, message)
    return msg


def write_eml_file(*, message: EmailMessage, out_path: Path) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with out_path.open("wb") as f:
        f.write(message.as_bytes(policy=SMTP))


def split_content_type(content_type: str) -> tuple[str, str, str | None]:
    """Return (maintype, subtype, charset) for a value like ``text/html; charset=utf-8``."""
    head, *params = [part.strip() for part in content_type.split(";")]
    maintype, _, subtype = head.lower().partition("/")
    charset = None
    for param in params:
        key, _, value = param.partition("=")
        if key.strip().lower() == "charset" and value.strip():
            charset = value.strip().strip('"')
    return maintype or "text", subtype or "plain", charset


def _set_body(msg: EmailMessage, message: TransportMessage) -> None:
    maintype, subtype, charset = split_content_type(message.content_type)
    charset = charset or message.charset or DEFAULT_CHARSET
    if maintype == "text":
        msg.set_content(message.content, subtype=subtype, charset=charset)
    else:
        msg.set_content(message.content.encode(charset), maintype=maintype, subtype=subtype)
