from __future__ import annotations

from datetime import datetime, timezone

import pytest

from mailkit.errors import InvalidArgumentError
from mailkit.models import BuildResult, EmailAddress, RecipientType, TransportMessage


def _message(**overrides) -> TransportMessage:
    fields = {
        "message_id": "<1@example.com>",
        "from_address": EmailAddress(address="from@example.com"),
        "to": (EmailAddress(address="to@example.com"),),
        "cc": (EmailAddress(address="cc@example.com"),),
        "bcc": (EmailAddress(address="bcc@example.com"),),
        "reply_to": (EmailAddress(address="reply@example.com"),),
        "headers": (("X-Tag", "one"), ("x-tag", "two"), ("X-Other", "three")),
        "sent_date": datetime(2026, 2, 8, tzinfo=timezone.utc),
    }
    fields.update(overrides)
    return TransportMessage(**fields)


def test_email_address_parse_splits_display_name() -> None:
    parsed = EmailAddress.parse("Jane Doe <jane@example.com>")

    assert parsed.address == "jane@example.com"
    assert parsed.display_name == "Jane Doe"
    assert str(parsed) == "Jane Doe <jane@example.com>"


def test_email_address_parse_explicit_display_name_wins() -> None:
    parsed = EmailAddress.parse("Jane Doe <jane@example.com>", "J. Doe")

    assert parsed.display_name == "J. Doe"


def test_email_address_parse_strips_and_rejects_empty() -> None:
    assert EmailAddress.parse("  a@b.com ").address == "a@b.com"
    assert str(EmailAddress.parse("a@b.com")) == "a@b.com"

    with pytest.raises(InvalidArgumentError):
        EmailAddress.parse("   ")


def test_email_address_model_rejects_empty_address() -> None:
    with pytest.raises(Exception):
        EmailAddress(address=" ")


def test_recipient_type_values_are_header_names() -> None:
    assert [kind.value for kind in RecipientType] == ["To", "Cc", "Bcc", "Reply-To"]


def test_transport_message_recipients_by_kind() -> None:
    message = _message()

    assert message.recipients(RecipientType.CC)[0].address == "cc@example.com"
    assert message.recipients(RecipientType.REPLY_TO)[0].address == "reply@example.com"
    assert message.envelope_recipients() == ["to@example.com", "cc@example.com", "bcc@example.com"]


def test_transport_message_header_lookup_is_case_insensitive() -> None:
    message = _message()

    assert message.get_header("X-TAG") == ["one", "two"]
    assert message.get_header("missing") == []


def test_envelope_sender_prefers_bounce_address() -> None:
    assert _message().envelope_sender == "from@example.com"
    assert _message(bounce_address="bounce@example.com").envelope_sender == "bounce@example.com"


def test_build_result_serializes_error() -> None:
    result = BuildResult(ok=False, error="missing recipient", error_field="to")

    assert result.model_dump() == {
        "ok": False,
        "message": None,
        "error": "missing recipient",
        "error_field": "to",
    }
