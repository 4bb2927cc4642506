from __future__ import annotations

import json
from pathlib import Path

import pytest

from mailkit.config import MailConfig


def _patch_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path, **overrides) -> None:
    import mailkit.cli as cli

    config = MailConfig(log_dir=tmp_path / "logs", **overrides)
    monkeypatch.setattr(cli, "load_config", lambda: config)


def test_cli_writes_eml_when_eml_dir_given(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    import mailkit.cli as cli

    _patch_config(monkeypatch, tmp_path)
    out_dir = tmp_path / "outbox"

    exit_code = cli.main(
        [
            "send",
            "--from",
            "from@example.com",
            "--to",
            "to@example.com",
            "--bcc",
            "hidden@example.com",
            "--subject",
            "Test Subject",
            "--msg",
            "message",
            "--header",
            "X-Campaign: spring",
            "--eml-dir",
            str(out_dir),
        ]
    )

    assert exit_code == 0
    summary = json.loads(capsys.readouterr().out)
    assert summary["transport"] == "eml"
    assert summary["recipients"] == ["to@example.com", "hidden@example.com"]

    written = list(out_dir.glob("*.eml"))
    assert len(written) == 1
    payload = written[0].read_text(encoding="utf-8")
    assert "Subject: Test Subject" in payload
    assert "X-Campaign: spring" in payload
    assert (tmp_path / "logs" / "mail.jsonl").exists()


def test_cli_missing_recipient_exits_with_validation_code(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys
) -> None:
    import mailkit.cli as cli

    _patch_config(monkeypatch, tmp_path)

    exit_code = cli.main(["send", "--from", "from@example.com", "--eml-dir", str(tmp_path / "outbox")])

    assert exit_code == 2
    assert "missing recipient" in capsys.readouterr().err


def test_cli_without_host_reports_configuration_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys
) -> None:
    import mailkit.cli as cli

    _patch_config(monkeypatch, tmp_path)

    exit_code = cli.main(["send", "--from", "from@example.com", "--to", "to@example.com", "--msg", "hi"])

    assert exit_code == 2
    assert "Cannot find valid hostname for mail session" in capsys.readouterr().err


def test_cli_sends_over_smtp(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    import mailkit.cli as cli

    sent: dict = {}

    class FakeSMTP:
        def __init__(self, host, port, timeout):
            sent["host"] = (host, port)
            self.sock = None

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc, tb):
            return False

        def ehlo(self):
            return None

        def has_extn(self, name):
            return False

        def send_message(self, message, from_addr=None, to_addrs=None):
            sent["to_addrs"] = to_addrs

    monkeypatch.setattr("mailkit.session.smtplib.SMTP", FakeSMTP)
    _patch_config(monkeypatch, tmp_path, host_name="smtp.example.com")

    exit_code = cli.main(
        ["send", "--from", "from@example.com", "--to", "to@example.com", "--html", "<h1>Hi</h1>", "--port", "2525"]
    )

    assert exit_code == 0
    assert sent == {"host": ("smtp.example.com", 2525), "to_addrs": ["to@example.com"]}
    assert json.loads(capsys.readouterr().out)["transport"] == "smtp://smtp.example.com:2525"


def test_cli_delivery_failure_exits_with_error(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    import mailkit.cli as cli

    def refusing_smtp(host, port, timeout):
        raise ConnectionRefusedError("connection refused")

    monkeypatch.setattr("mailkit.session.smtplib.SMTP", refusing_smtp)
    _patch_config(monkeypatch, tmp_path)

    exit_code = cli.main(
        ["send", "--from", "from@example.com", "--to", "to@example.com", "--host", "smtp.example.com"]
    )

    assert exit_code == 1
    assert "delivery failed" in capsys.readouterr().err


def test_cli_without_command_prints_help(capsys) -> None:
    import mailkit.cli as cli

    assert cli.main([]) == 1
    assert "usage" in capsys.readouterr().out.lower()


def test_cli_repeated_single_use_header_is_written_once(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys
) -> None:
    import mailkit.cli as cli

    _patch_config(monkeypatch, tmp_path)
    out_dir = tmp_path / "outbox"

    exit_code = cli.main(
        [
            "send",
            "--from",
            "from@example.com",
            "--to",
            "to@example.com",
            "--header",
            "Sender:a@example.com",
            "--header",
            "Sender:b@example.com",
            "--eml-dir",
            str(out_dir),
        ]
    )

    assert exit_code == 0
    payload = next(out_dir.glob("*.eml")).read_text(encoding="utf-8")
    assert payload.count("Sender:") == 1
    assert "Sender: b@example.com" in payload


def test_cli_rejects_port_zero(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    import mailkit.cli as cli

    _patch_config(monkeypatch, tmp_path, host_name="smtp.example.com")

    exit_code = cli.main(["send", "--from", "from@example.com", "--to", "to@example.com", "--port", "0"])

    assert exit_code == 2
    assert "port must be in 1..65535" in capsys.readouterr().err
