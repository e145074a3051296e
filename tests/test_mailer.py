from __future__ import annotations

import smtplib
from unittest.mock import MagicMock, patch

import pytest

from linewatch.config.defaults import DEFAULT_CONFIG
from linewatch.errors import ConfigurationError, HandlerIOError
from linewatch.mailer import Mailer


def _mailer(**kwargs) -> Mailer:
    kwargs.setdefault("sender", "linewatch@example.com")
    return Mailer(**kwargs)


def test_compose_plain_text_message() -> None:
    msg = _mailer(subject_prefix="[lw]").compose("a@example.com", "hello", "body\n")
    assert msg["To"] == "a@example.com"
    assert msg["From"] == "linewatch@example.com"
    assert msg["Subject"] == "[lw] hello"
    assert msg.get_content_type() == "text/plain"
    assert msg.get_content() == "body\n"


def test_from_config_defaults() -> None:
    mailer = Mailer.from_config(DEFAULT_CONFIG["email"])
    assert mailer.transport == "smtp"
    assert mailer.smtp_host == "localhost"
    assert mailer.smtp_port == 25
    assert "@" in mailer.sender


def test_unknown_transport_rejected() -> None:
    with pytest.raises(ConfigurationError):
        _mailer(transport="carrier-pigeon")


@patch("linewatch.mailer.smtplib.SMTP")
def test_smtp_send(mock_smtp: MagicMock) -> None:
    _mailer(smtp_host="relay", smtp_port=2525).send("a@example.com", "s", "b")
    mock_smtp.assert_called_once_with("relay", 2525, timeout=10.0)
    session = mock_smtp.return_value.__enter__.return_value
    session.send_message.assert_called_once()
    sent = session.send_message.call_args[0][0]
    assert sent["To"] == "a@example.com"


@patch("linewatch.mailer.smtplib.SMTP")
def test_smtp_failure_raises_handler_error(mock_smtp: MagicMock) -> None:
    mock_smtp.side_effect = ConnectionRefusedError("refused")
    with pytest.raises(HandlerIOError, match="a@example.com"):
        _mailer().send("a@example.com", "s", "b")


@patch("linewatch.mailer.smtplib.SMTP")
def test_smtp_protocol_error_raises_handler_error(mock_smtp: MagicMock) -> None:
    session = mock_smtp.return_value.__enter__.return_value
    session.send_message.side_effect = smtplib.SMTPRecipientsRefused({})
    with pytest.raises(HandlerIOError):
        _mailer().send("a@example.com", "s", "b")


@patch("linewatch.mailer.subprocess.Popen")
def test_sendmail_transport_pipes_message(mock_popen: MagicMock) -> None:
    _mailer(transport="sendmail", sendmail_path="/bin/sm").send("a@example.com", "s", "b")
    assert mock_popen.call_args[0][0] == ["/bin/sm", "-t", "-i"]
    proc = mock_popen.return_value
    written = proc.stdin.write.call_args[0][0]
    assert b"To: a@example.com" in written
    proc.stdin.close.assert_called_once()


@patch("linewatch.mailer.subprocess.Popen", side_effect=FileNotFoundError("no sendmail"))
def test_sendmail_missing_raises_handler_error(_mock_popen: MagicMock) -> None:
    with pytest.raises(HandlerIOError):
        _mailer(transport="sendmail").send("a@example.com", "s", "b")
