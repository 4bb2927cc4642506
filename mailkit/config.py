from __future__ import annotations

"""Mail configuration (loaded from environment variables + .env).

Design:
- Session settings are passed explicitly to builders; nothing is read from
  process-wide properties at send time.
- Timeouts are in milliseconds and default to 60 seconds.
- Environment variables always override .env file values.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

DEFAULT_SOCKET_TIMEOUT_MS = 60_000


class MailConfig(BaseModel):
    host_name: str | None = None
    smtp_port: int = 25
    ssl_smtp_port: int = 465
    ssl_on_connect: bool = False
    start_tls_enabled: bool = False
    start_tls_required: bool = False

    socket_connection_timeout_ms: int = DEFAULT_SOCKET_TIMEOUT_MS
    socket_timeout_ms: int = DEFAULT_SOCKET_TIMEOUT_MS

    username: str | None = None
    password: str | None = None

    charset: str | None = None
    bounce_address: str | None = None

    log_dir: Path = Path(".mailkit/logs")
    log_level: str = "INFO"

    @field_validator("socket_connection_timeout_ms", "socket_timeout_ms")
    @classmethod
    def _positive_int(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("value must be positive")
        return value

    @field_validator("smtp_port", "ssl_smtp_port")
    @classmethod
    def _valid_port(cls, value: int) -> int:
        if value < 1 or value > 65535:
            raise ValueError("port must be in 1..65535")
        return value

    @property
    def auth_ready(self) -> bool:
        return bool(self.username) and bool(self.password)


def load_config(env_file: str | None = ".env") -> MailConfig:
    if env_file:
        load_dotenv(env_file, override=False)
    return MailConfig(
        host_name=_getenv_opt("MAIL_HOST"),
        smtp_port=int(_getenv_str("MAIL_SMTP_PORT", "25")),
        ssl_smtp_port=int(_getenv_str("MAIL_SSL_SMTP_PORT", "465")),
        ssl_on_connect=_getenv_bool("MAIL_SSL_ON_CONNECT", False),
        start_tls_enabled=_getenv_bool("MAIL_STARTTLS_ENABLED", False),
        start_tls_required=_getenv_bool("MAIL_STARTTLS_REQUIRED", False),
        socket_connection_timeout_ms=int(
            _getenv_str("MAIL_SOCKET_CONNECTION_TIMEOUT_MS", str(DEFAULT_SOCKET_TIMEOUT_MS))
        ),
        socket_timeout_ms=int(_getenv_str("MAIL_SOCKET_TIMEOUT_MS", str(DEFAULT_SOCKET_TIMEOUT_MS))),
        username=_getenv_opt("MAIL_USERNAME"),
        password=_getenv_opt("MAIL_PASSWORD"),
        charset=_getenv_opt("MAIL_CHARSET"),
        bounce_address=_getenv_opt("MAIL_BOUNCE_ADDRESS"),
        log_dir=Path(_getenv_str("MAIL_LOG_DIR", ".mailkit/logs")),
        log_level=_getenv_str("LOG_LEVEL", "INFO"),
    )


def _getenv_opt(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or value == "":
        return None
    return value


def _getenv_str(name: str, default: str) -> str:
    value = _getenv_opt(name)
    return value if value is not None else default


def _getenv_bool(name: str, default: bool) -> bool:
    value = _getenv_opt(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}
