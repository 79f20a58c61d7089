"""Fake notifier: records triggered notifications for testing."""

from uuid import uuid4

from procurement.notifier.port import NotifierPort


class FakeNotifier(NotifierPort):
    """Notifier that records notifications in memory for test assertions."""

    def __init__(self):
        self.sent: list[dict] = []
        self.should_succeed = True
        self.raise_on_notify = False
        self.failure_reason = "Notification dispatch failed"

    def configure(
        self,
        should_succeed: bool = True,
        failure_reason: str = "Notification dispatch failed",
        raise_on_notify: bool = False,
    ):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason
        self.raise_on_notify = raise_on_notify

    def notify(self, event_type: str, order_id: str, recipient_id: str, payload: dict) -> dict:
        if self.raise_on_notify:
            raise ConnectionError(self.failure_reason)
        if not self.should_succeed:
            return {"notification_id": None, "status": "failed", "error": self.failure_reason}

        notification_id = f"ntf-{uuid4().hex[:12]}"
        self.sent.append(
            {
                "notification_id": notification_id,
                "event_type": event_type,
                "order_id": order_id,
                "recipient_id": recipient_id,
                "payload": payload,
            }
        )
        return {"notification_id": notification_id, "status": "sent"}

    def sent_to(self, recipient_id: str) -> list[dict]:
        return [n for n in self.sent if n["recipient_id"] == recipient_id]

    def reset(self):
        """Clear recorded notifications (useful between tests)."""
        self.sent.clear()
        self.should_succeed = True
        self.raise_on_notify = False
        self.failure_reason = "Notification dispatch failed"
