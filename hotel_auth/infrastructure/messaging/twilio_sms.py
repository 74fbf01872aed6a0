from twilio.rest import Client
from twilio.http.http_client import TwilioHttpClient
from twilio.base.exceptions import TwilioException
from typing import Optional
import logging

from ...application.ports.messaging import DeliveryError

logger = logging.getLogger(__name__)


class TwilioSmsSender:
    def __init__(self, account_sid: str, auth_token: str, from_number: str, client: Optional[Client] = None):
        self.from_number = from_number
        self.client = client
        if self.client is None and account_sid and auth_token:
            self.client = Client(
                account_sid,
                auth_token,
                http_client=TwilioHttpClient(timeout=15, max_retries=3),
            )

    def send(self, to: str, body: str) -> None:
        if self.client is None or not self.from_number:
            raise DeliveryError("Twilio SMS not configured (TWILIO_ACCOUNT_SID/TWILIO_AUTH_TOKEN/TWILIO_PHONE_NUMBER)")
        try:
            message = self.client.messages.create(to=to, from_=self.from_number, body=body)
        except TwilioException as e:
            raise DeliveryError(f"Twilio send failed: {e}") from e
        logger.info(f"Twilio SMS queued, SID: {message.sid}")
