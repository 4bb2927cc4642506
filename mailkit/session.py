from __future__ import annotations

import smtplib
import ssl

from pydantic import BaseModel, ConfigDict, Field, field_validator

from mailkit.config import DEFAULT_SOCKET_TIMEOUT_MS, MailConfig
from mailkit.errors import MailConfigurationError

MISSING_HOST_MESSAGE = "Cannot find valid hostname for mail session"


class MailSession(BaseModel):
    """Connection context for one mail host.

    Holds settings only; ``connect()`` hands them to smtplib and the caller
    owns the returned connection.
    """

    model_config = ConfigDict(frozen=True)

    host: str
    port: int = 25
    ssl_port: int = 465
    ssl_on_connect: bool = False
    start_tls_enabled: bool = False
    start_tls_required: bool = False
    connection_timeout_ms: int = DEFAULT_SOCKET_TIMEOUT_MS
    timeout_ms: int = DEFAULT_SOCKET_TIMEOUT_MS
    username: str | None = None
    password: str | None = Field(default=None, repr=False)

    @field_validator("host")
    @classmethod
    def _host_not_empty(cls, value: str) -> str:
        v = value.strip()
        if not v:
            raise ValueError(MISSING_HOST_MESSAGE)
        return v

    @classmethod
    def from_config(cls, config: MailConfig, *, host: str | None = None) -> MailSession:
        resolved = (host or config.host_name or "").strip()
        if not resolved:
            raise MailConfigurationError(MISSING_HOST_MESSAGE, field="host_name")
        return cls(
            host=resolved,
            port=config.smtp_port,
            ssl_port=config.ssl_smtp_port,
            ssl_on_connect=config.ssl_on_connect,
            start_tls_enabled=config.start_tls_enabled,
            start_tls_required=config.start_tls_required,
            connection_timeout_ms=config.socket_connection_timeout_ms,
            timeout_ms=config.socket_timeout_ms,
            username=config.username,
            password=config.password,
        )

    @property
    def effective_port(self) -> int:
        return self.ssl_port if self.ssl_on_connect else self.port

    @property
    def url(self) -> str:
        scheme = "smtps" if self.ssl_on_connect else "smtp"
        return f"{scheme}://{self.host}:{self.effective_port}"

    @property
    def has_credentials(self) -> bool:
        return bool(self.username) and bool(self.password)

    def connect(self) -> smtplib.SMTP:
        """Open the SMTP connection using the connect timeout, then switch
        the socket to the read/write timeout."""
        timeout = self.connection_timeout_ms / 1000
        if self.ssl_on_connect:
            server: smtplib.SMTP = smtplib.SMTP_SSL(
                self.host,
                self.ssl_port,
                timeout=timeout,
                context=ssl.create_default_context(),
            )
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=timeout)
        sock = getattr(server, "sock", None)
        if sock is not None:
            sock.settimeout(self.timeout_ms / 1000)
        return server
