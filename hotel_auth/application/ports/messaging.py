from typing import Protocol, Optional


class DeliveryError(Exception):
    """Raised by a dispatcher when a message could not be handed off."""


class MessageDispatcher(Protocol):
    def send_email(self, to: str, subject: str, text: str, html: Optional[str] = None) -> None:
        ...

    def send_sms(self, to: str, body: str) -> None:
        ...
