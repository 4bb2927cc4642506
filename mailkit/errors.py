from __future__ import annotations


class MailKitError(Exception):
    """Base error type for mailkit exceptions."""


class InvalidArgumentError(MailKitError, ValueError):
    """A builder method was called with an empty or malformed argument."""


class EmailValidationError(MailKitError):
    """A required message field is missing when the message is assembled."""

    def __init__(self, message: str, *, field: str | None = None):
        super().__init__(message)
        self.field = field


class MailConfigurationError(EmailValidationError):
    """Session settings are incomplete (for example no host name)."""


class MessageAlreadyBuiltError(MailKitError, RuntimeError):
    """The builder already produced its message and is frozen."""


class EmailDeliveryError(MailKitError):
    """Handing the message to the transport failed."""

    def __init__(self, message: str, *, stage: str, url: str | None = None):
        super().__init__(message)
        self.stage = stage
        self.url = url
