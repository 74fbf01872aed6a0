"""Send plain/HTML emails over SMTP (STARTTLS)."""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from ...application.ports.messaging import DeliveryError

logger = logging.getLogger(__name__)

# Avoid blocking the request forever if SMTP is slow or unreachable
SMTP_TIMEOUT_SECONDS = 15


class SmtpMailer:
    def __init__(self, host: str, port: int, user: str, password: str, from_email: str, timeout: int = SMTP_TIMEOUT_SECONDS):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_email = from_email or user
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.host and self.user)

    def send(self, to: str, subject: str, text: str, html: Optional[str] = None) -> None:
        if not self.configured:
            raise DeliveryError("SMTP not configured (EMAIL_HOST/EMAIL_USER)")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_email
        msg["To"] = to
        msg.attach(MIMEText(text, "plain"))
        msg.attach(MIMEText(html or text, "html"))

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                server.starttls()
                server.login(self.user, self.password)
                server.sendmail(self.from_email, [to], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(f"SMTP send failed: {e}") from e
        logger.info(f"Email '{subject}' sent")
