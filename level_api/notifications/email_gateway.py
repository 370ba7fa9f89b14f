"""SMTP email transport.

One attempt per message, bounded by the socket timeout. The blocking
smtplib work runs in the thread pool so the event loop never waits on it.
"""

from __future__ import annotations

import logging
import re
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from fastapi.concurrency import run_in_threadpool

from common.config import Settings

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(address: str) -> bool:
    return bool(address) and _EMAIL_RE.match(address) is not None


class SmtpEmailGateway:
    def __init__(
        self,
        host: Optional[str],
        port: int = 587,
        user: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        sender: str = '"Water Monitor" <alert@watermonitor.com>',
        timeout: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._use_tls = use_tls
        self._sender = sender
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "SmtpEmailGateway":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            sender=settings.email_from,
            timeout=settings.email_timeout_seconds,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self._host)

    async def send(self, to: str, subject: str, body: str, html: Optional[str] = None) -> bool:
        if not self.is_configured:
            logger.warning("[EMAIL] Skipped '%s': SMTP not configured", subject)
            return False
        if not is_valid_email(to):
            logger.warning("[EMAIL] Skipped '%s': invalid recipient %r", subject, to)
            return False
        return await run_in_threadpool(self._send_sync, to, subject, body, html)

    def _send_sync(self, to: str, subject: str, body: str, html: Optional[str]) -> bool:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self._sender
        msg["To"] = to
        msg.attach(MIMEText(body, "plain", "utf-8"))
        if html:
            msg.attach(MIMEText(html, "html", "utf-8"))

        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as smtp:
                if self._use_tls:
                    smtp.starttls()
                if self._user and self._password:
                    smtp.login(self._user, self._password)
                smtp.sendmail(self._sender, [to], msg.as_string())
            return True
        except smtplib.SMTPAuthenticationError as e:
            logger.error("[EMAIL] Authentication failed, check SMTP_USER/SMTP_PASSWORD: %s", e)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("[EMAIL] Delivery to %s failed: %s", to, e)
        return False

    def verify(self) -> bool:
        """Connects and says hello. Run once at startup to log whether email works."""
        if not self.is_configured:
            return False
        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as smtp:
                if self._use_tls:
                    smtp.starttls()
                if self._user and self._password:
                    smtp.login(self._user, self._password)
                smtp.noop()
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.warning("[EMAIL] SMTP verification failed: %s", e)
            return False
