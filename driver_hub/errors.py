"""
Typed failures surfaced to callers. Routes render them as {"error": reason, "detail": message}.
"""


class DriverHubError(Exception):
    """Base class. status_code is the HTTP status the API layer answers with."""
    status_code = 500
    reason = "internal error"

    def __init__(self, message: str | None = None):
        self.message = message or self.reason
        super().__init__(self.message)


class NotFoundError(DriverHubError):
    """Requested row does not exist or does not belong to the caller."""
    status_code = 404
    reason = "not found"


class OrderNotFoundError(NotFoundError):
    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__(f"order {order_id} not found")


class PenaltyNotFoundError(NotFoundError):
    def __init__(self, penalty_id):
        self.penalty_id = penalty_id
        super().__init__(f"penalty {penalty_id} not found")


class NotificationNotFoundError(NotFoundError):
    def __init__(self, notification_id):
        self.notification_id = notification_id
        super().__init__(f"notification {notification_id} not found")


class DriverNotFoundError(NotFoundError):
    """No driver row is linked to the authenticated identity."""
    status_code = 401
    reason = "unknown driver"


class IllegalTransitionError(DriverHubError):
    """Requested status change violates the order lifecycle."""
    status_code = 409
    reason = "illegal transition"

    def __init__(self, current_status: str, requested_status: str):
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(f"cannot move order from {current_status} to {requested_status}")


class MissingRequiredDataError(DriverHubError):
    status_code = 422
    reason = "missing data"

    def __init__(self, message: str | None = None, reason: str | None = None):
        if reason:
            self.reason = reason
        super().__init__(message)


class AppealNotAllowedError(DriverHubError):
    status_code = 409
    reason = "appeal not allowed"


class ConcurrentModificationError(DriverHubError):
    """Order changed between read and conditional write. Caller should refetch."""
    status_code = 409
    reason = "stale state"

    def __init__(self, order_id, expected_status: str):
        self.order_id = order_id
        self.expected_status = expected_status
        super().__init__(f"order {order_id} is no longer {expected_status}")


class UpstreamFailureError(DriverHubError):
    """Database or object storage unreachable. Always safe to retry with backoff."""
    status_code = 503
    reason = "upstream failure"

    def __init__(self, service: str, message: str | None = None):
        self.service = service
        super().__init__(message or f"{service} unavailable")
