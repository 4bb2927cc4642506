from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from mailkit.builder import MessageBuilder
from mailkit.config import load_config
from mailkit.email.base import MailTransport
from mailkit.email.eml_backend import EmlBackend
from mailkit.errors import EmailDeliveryError, EmailValidationError, InvalidArgumentError
from mailkit.storage.logs import StructuredLogger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mailkit", description="Compose and deliver email messages")
    subparsers = parser.add_subparsers(dest="command")

    send_parser = subparsers.add_parser("send", help="Build one message and deliver it")
    send_parser.add_argument("--from", dest="sender", required=True, help="sender address")
    send_parser.add_argument("--to", action="append", default=[], help="To recipient (repeatable)")
    send_parser.add_argument("--cc", action="append", default=[], help="Cc recipient (repeatable)")
    send_parser.add_argument("--bcc", action="append", default=[], help="Bcc recipient (repeatable)")
    send_parser.add_argument("--reply-to", action="append", default=[], help="Reply-To address (repeatable)")
    send_parser.add_argument("--subject", default=None)
    body = send_parser.add_mutually_exclusive_group()
    body.add_argument("--msg", default=None, help="plain-text body")
    body.add_argument("--html", default=None, help="HTML body")
    send_parser.add_argument("--header", action="append", default=[], help="extra header as NAME:VALUE")
    send_parser.add_argument("--host", default=None, help="SMTP host (overrides MAIL_HOST)")
    send_parser.add_argument("--port", type=int, default=None, help="SMTP port (overrides MAIL_SMTP_PORT)")
    send_parser.add_argument(
        "--eml-dir",
        default=None,
        help="write the message as .eml into this directory instead of sending over SMTP",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint.

    Builds one message from the arguments, delivers it (SMTP, or .eml with
    --eml-dir) and prints a JSON summary. Exit codes: 0 sent, 1 delivery
    failed, 2 invalid message.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command != "send":
        parser.print_help()
        return 1

    cfg = load_config()
    logging.basicConfig(level=cfg.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    builder = MessageBuilder(config=cfg)
    transport: MailTransport | None = None
    if args.eml_dir:
        transport = EmlBackend(out_dir=Path(args.eml_dir), logger=StructuredLogger(path=cfg.log_dir / "mail.jsonl"))

    try:
        _apply_args(builder, args)
        message_id = builder.send(transport)
    except (InvalidArgumentError, EmailValidationError) as exc:
        print(f"[mailkit] invalid message: {exc}", file=sys.stderr)
        return 2
    except EmailDeliveryError as exc:
        print(f"[mailkit] delivery failed ({exc.url}): {exc}", file=sys.stderr)
        return 1

    message = builder.message
    summary: dict[str, Any] = {
        "message_id": message_id,
        "from": str(message.from_address) if message else None,
        "recipients": message.envelope_recipients() if message else [],
        "transport": "eml" if args.eml_dir else builder.get_mail_session().url,
    }
    print(json.dumps(summary, indent=2, ensure_ascii=True))
    return 0


def _apply_args(builder: MessageBuilder, args: argparse.Namespace) -> None:
    builder.set_from(args.sender)
    if args.host:
        builder.set_host_name(args.host)
    if args.port is not None:
        builder.set_smtp_port(args.port)
    if args.to:
        builder.add_to(args.to)
    if args.cc:
        builder.add_cc(args.cc)
    if args.bcc:
        builder.add_bcc(args.bcc)
    if args.reply_to:
        builder.add_reply_to(args.reply_to)
    if args.subject is not None:
        builder.set_subject(args.subject)
    if args.msg is not None:
        builder.set_msg(args.msg)
    elif args.html is not None:
        builder.set_content(args.html, "text/html")
    for raw in args.header:
        name, _, value = raw.partition(":")
        builder.add_header(name, value.strip())
