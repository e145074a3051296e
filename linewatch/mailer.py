from __future__ import annotations

import getpass
import logging
import smtplib
import socket
import subprocess
from email.message import EmailMessage
from typing import Any

from linewatch.errors import ConfigurationError, HandlerIOError

log = logging.getLogger(__name__)

TRANSPORTS = ("smtp", "sendmail")


class Mailer:
    """Plain-text mail submission over SMTP or a local sendmail binary.

    Config (the ``email`` table):
        transport: "smtp" (synchronous) or "sendmail" (piped, not awaited)
        smtp_host, smtp_port, smtp_timeout: SMTP relay
        sender: From address (default: user@fqdn)
        sendmail_path: sendmail-compatible binary
        subject_prefix: prepended to every subject
    """

    def __init__(
        self,
        transport: str = "smtp",
        smtp_host: str = "localhost",
        smtp_port: int = 25,
        smtp_timeout: float = 10.0,
        sender: str = "",
        sendmail_path: str = "/usr/sbin/sendmail",
        subject_prefix: str = "",
    ) -> None:
        if transport not in TRANSPORTS:
            raise ConfigurationError(
                f"email.transport must be one of {', '.join(TRANSPORTS)}, got {transport!r}"
            )
        self.transport = transport
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_timeout = smtp_timeout
        self.sender = sender or f"{getpass.getuser()}@{socket.getfqdn()}"
        self.sendmail_path = sendmail_path
        self.subject_prefix = subject_prefix

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> Mailer:
        return cls(
            transport=config.get("transport", "smtp"),
            smtp_host=config.get("smtp_host", "localhost"),
            smtp_port=int(config.get("smtp_port", 25)),
            smtp_timeout=float(config.get("smtp_timeout", 10.0)),
            sender=config.get("sender", ""),
            sendmail_path=config.get("sendmail_path", "/usr/sbin/sendmail"),
            subject_prefix=config.get("subject_prefix", ""),
        )

    def compose(self, recipient: str, subject: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = recipient
        msg["Subject"] = f"{self.subject_prefix} {subject}" if self.subject_prefix else subject
        msg.set_content(body)
        return msg

    def send(self, recipient: str, subject: str, body: str) -> None:
        msg = self.compose(recipient, subject, body)
        if self.transport == "sendmail":
            self._pipe_to_sendmail(msg)
        else:
            self._submit_smtp(msg)
        log.debug("Mail to %s: %s", recipient, msg["Subject"])

    def _submit_smtp(self, msg: EmailMessage) -> None:
        try:
            with smtplib.SMTP(
                self.smtp_host, self.smtp_port, timeout=self.smtp_timeout
            ) as smtp:
                smtp.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise HandlerIOError(
                f"mail to {msg['To']} via {self.smtp_host}:{self.smtp_port} failed: {exc}"
            ) from exc

    def _pipe_to_sendmail(self, msg: EmailMessage) -> None:
        try:
            proc = subprocess.Popen(  # noqa: S603
                [self.sendmail_path, "-t", "-i"],
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
            assert proc.stdin is not None
            proc.stdin.write(msg.as_bytes())
            proc.stdin.close()
        except OSError as exc:
            raise HandlerIOError(f"{self.sendmail_path} failed: {exc}") from exc
