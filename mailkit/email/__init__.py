"""Pluggable delivery backends for built messages."""

from mailkit.email.base import MailTransport
from mailkit.email.eml_backend import EmlBackend
from mailkit.email.smtp_backend import SmtpBackend

__all__ = ["EmlBackend", "MailTransport", "SmtpBackend"]
