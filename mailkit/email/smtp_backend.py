from __future__ import annotations

import smtplib
import ssl
import time

from mailkit.errors import EmailDeliveryError
from mailkit.models import TransportMessage
from mailkit.render.eml import build_mime_message
from mailkit.session import MailSession
from mailkit.storage.logs import StructuredLogger


class SmtpBackend:
    """SMTP backend: one connection per message, optional STARTTLS, no retries."""

    def __init__(self, *, session: MailSession, logger: StructuredLogger) -> None:
        self.session = session
        self.logger = logger

    def send_message(self, *, message: TransportMessage) -> None:
        url = self.session.url
        started = time.perf_counter()

        try:
            mime = build_mime_message(message, include_bcc=False)
            with self.session.connect() as server:
                server.ehlo()
                self._maybe_starttls(server)
                if self.session.has_credentials:
                    server.login(str(self.session.username), str(self.session.password))
                refused = server.send_message(
                    mime,
                    from_addr=message.envelope_sender,
                    to_addrs=message.envelope_recipients(),
                )
        except EmailDeliveryError as exc:
            self._log_failure(message, exc, url)
            raise
        except (smtplib.SMTPException, OSError, ValueError) as exc:
            self._log_failure(message, exc, url)
            raise EmailDeliveryError(f"SMTP send failed: {exc}", stage="email", url=url) from exc

        self.logger.info(
            "email_sent",
            stage="email",
            status="partial" if refused else "ok",
            message_id=message.message_id,
            url=url,
            latency_ms=int((time.perf_counter() - started) * 1000),
            recipients=len(message.envelope_recipients()),
            refused=sorted(refused or {}),
        )

    def _maybe_starttls(self, server: smtplib.SMTP) -> None:
        if self.session.ssl_on_connect or not self.session.start_tls_enabled:
            return
        if server.has_extn("starttls"):
            server.starttls(context=ssl.create_default_context())
            server.ehlo()
        elif self.session.start_tls_required:
            raise EmailDeliveryError(
                "STARTTLS required but not offered by server",
                stage="email",
                url=self.session.url,
            )

    def _log_failure(self, message: TransportMessage, exc: Exception, url: str) -> None:
        self.logger.error(
            "email_send_failed",
            stage="email",
            message_id=message.message_id,
            error_type=exc.__class__.__name__,
            error_message=str(exc),
            url=url,
        )
