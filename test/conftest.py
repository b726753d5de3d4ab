import pytest


@pytest.fixture(autouse=True)
def pushed_notifications(monkeypatch):
    """Capture dispatcher hand-offs instead of talking to Redis."""
    pushed = []

    async def fake_push(notification_id, recipient_id, notification_type):
        pushed.append((notification_id, recipient_id, notification_type))
        return True

    monkeypatch.setattr("driver_hub.notifications.push_notification", fake_push)
    return pushed
