"""Notifier port: abstract interface for the notification trigger.

Delivery across push, SMS and email (and the recipient's channel preferences)
lives behind this interface. The order lifecycle only hands over a typed
event and a recipient.
"""

from abc import ABC, abstractmethod


class NotifierPort(ABC):
    """Abstract interface for notifier adapters."""

    @abstractmethod
    def notify(self, event_type: str, order_id: str, recipient_id: str, payload: dict) -> dict:
        """Trigger a notification for one recipient.

        Returns:
            dict with keys: notification_id, status ("sent" or "failed"), error (optional)
        """
        ...
