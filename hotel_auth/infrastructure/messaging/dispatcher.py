import hashlib
import logging
from typing import Optional

from ...application.ports.messaging import MessageDispatcher
from ...core.config import Settings
from .smtp_mailer import SmtpMailer
from .twilio_sms import TwilioSmsSender

logger = logging.getLogger(__name__)


class NotificationDispatcher(MessageDispatcher):
    def __init__(self, mailer: SmtpMailer, sms: TwilioSmsSender):
        self.mailer = mailer
        self.sms = sms

    def send_email(self, to: str, subject: str, text: str, html: Optional[str] = None) -> None:
        self.mailer.send(to, subject, text, html)

    def send_sms(self, to: str, body: str) -> None:
        self.sms.send(to, body)


class LoggingDispatcher(MessageDispatcher):
    """Development backend: messages are written to the log instead of sent."""

    def __init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    def send_email(self, to: str, subject: str, text: str, html: Optional[str] = None) -> None:
        self._logger.info(f"[mock email] to={_mask(to)} subject={subject!r} text={text!r}")

    def send_sms(self, to: str, body: str) -> None:
        self._logger.info(f"[mock sms] to={_mask(to)} body={body!r}")


def _mask(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()[:12]


def build_dispatcher(settings: Settings) -> MessageDispatcher:
    if settings.MESSAGING_BACKEND.lower() == "log":
        logger.warning("MESSAGING_BACKEND=log: OTP messages are logged, not delivered")
        return LoggingDispatcher()
    mailer = SmtpMailer(
        host=settings.EMAIL_HOST,
        port=settings.EMAIL_PORT,
        user=settings.EMAIL_USER,
        password=settings.EMAIL_PASSWORD,
        from_email=settings.EMAIL_FROM,
    )
    sms = TwilioSmsSender(
        account_sid=settings.TWILIO_ACCOUNT_SID,
        auth_token=settings.TWILIO_AUTH_TOKEN,
        from_number=settings.TWILIO_PHONE_NUMBER,
    )
    if not mailer.configured:
        logger.warning("SMTP not configured; email OTP delivery will fail")
    return NotificationDispatcher(mailer, sms)
