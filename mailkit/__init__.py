"""Build validated, immutable email messages and hand them to a transport."""

from mailkit.builder import MessageBuilder
from mailkit.config import MailConfig, load_config
from mailkit.errors import (
    EmailDeliveryError,
    EmailValidationError,
    InvalidArgumentError,
    MailConfigurationError,
    MailKitError,
    MessageAlreadyBuiltError,
)
from mailkit.models import BuildResult, EmailAddress, RecipientType, TransportMessage
from mailkit.session import MailSession

__all__ = [
    "BuildResult",
    "EmailAddress",
    "EmailDeliveryError",
    "EmailValidationError",
    "InvalidArgumentError",
    "MailConfig",
    "MailConfigurationError",
    "MailKitError",
    "MailSession",
    "MessageAlreadyBuiltError",
    "MessageBuilder",
    "RecipientType",
    "TransportMessage",
    "load_config",
]
