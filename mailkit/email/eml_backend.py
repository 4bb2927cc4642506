from __future__ import annotations

import re
from pathlib import Path

from mailkit.errors import EmailDeliveryError
from mailkit.models import TransportMessage
from mailkit.render.eml import build_mime_message, write_eml_file
from mailkit.storage.logs import StructuredLogger

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class EmlBackend:
    """No-setup backend that writes each message to ``<out_dir>/<message-id>.eml``."""

    def __init__(self, *, out_dir: Path, logger: StructuredLogger) -> None:
        self.out_dir = out_dir
        self.logger = logger

    def path_for(self, message: TransportMessage) -> Path:
        stem = _UNSAFE_CHARS.sub("_", message.message_id.strip("<>")).strip("_") or "message"
        return self.out_dir / f"{stem}.eml"

    def send_message(self, *, message: TransportMessage) -> None:
        out_path = self.path_for(message)
        try:
            # Bcc recipients never appear in the serialized message.
            mime = build_mime_message(message, include_bcc=False)
            write_eml_file(message=mime, out_path=out_path)
        except (OSError, ValueError) as exc:
            self.logger.error(
                "email_eml_failed",
                stage="email",
                message_id=message.message_id,
                error_type=exc.__class__.__name__,
                error_message=str(exc),
                path=str(out_path),
            )
            raise EmailDeliveryError(f"writing .eml failed: {exc}", stage="email", url=str(out_path)) from exc
        self.logger.info(
            "email_eml_written",
            stage="email",
            message_id=message.message_id,
            path=str(out_path),
            recipients=len(message.envelope_recipients()),
        )
