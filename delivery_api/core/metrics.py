from prometheus_client import Counter

ORDER_TRANSITIONS = Counter(
    "order_status_transitions_total",
    "Order status transitions committed",
    ["from_status", "to_status"],
)

ORDER_ASSIGNMENT_CONFLICTS = Counter(
    "order_assignment_conflicts_total",
    "Accept-order attempts rejected because another driver already holds the order",
)

NOTIFICATION_WRITE_FAILURES = Counter(
    "notification_write_failures_total",
    "Notification rows dropped because the write failed",
    ["notification_type"],
)
