"""
Prometheus metrics: order transitions, duty toggles, appeals, notifications, upstream failures.
"""
from prometheus_client import Counter, generate_latest

# Order lifecycle: persisted transitions by target status
order_transitions_total = Counter(
    "order_transitions_total",
    "Total order status transitions persisted",
    ["to_status"],
)
order_transitions_rejected_total = Counter(
    "order_transitions_rejected_total",
    "Total order status transitions rejected (illegal, missing proof, stale state)",
    ["current_status", "requested_status", "reason"],
)

duty_toggles_total = Counter(
    "duty_toggles_total",
    "Total driver mode toggles",
    ["direction"],
)
penalty_appeals_total = Counter(
    "penalty_appeals_total",
    "Total penalty appeals submitted",
)
notifications_created_total = Counter(
    "notifications_created_total",
    "Total notification records created for the push dispatcher",
    ["type"],
)

# Database / object storage unreachable
upstream_failures_total = Counter(
    "upstream_failures_total",
    "Total requests failed because an upstream service was unreachable",
    ["service"],
)


def get_metrics_content_type():
    return "text/plain; charset=utf-8; version=0.0.4"


def get_metrics_bytes():
    return generate_latest()
