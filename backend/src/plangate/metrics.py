"""Business metrics for Prometheus monitoring."""
from prometheus_client import Counter, Gauge

# Quota gate metrics
quota_decisions_total = Counter(
    "quota_decisions_total",
    "Total quota gate decisions",
    labelnames=["action", "outcome"],  # outcome: allowed, or the error code
)

# Usage ledger metrics
usage_recorded_total = Counter(
    "usage_recorded_total",
    "Total usage log entries appended",
    labelnames=["action"],
)

# Waitlist metrics
waitlist_transitions_total = Counter(
    "waitlist_transitions_total",
    "Total waitlist entry status transitions",
    labelnames=["status"],  # pending (registration), notified, converted, expired, cancelled
)

waitlist_notification_failures_total = Counter(
    "waitlist_notification_failures_total",
    "Seat-available emails that failed to send",
)

paid_seats_in_use = Gauge(
    "paid_seats_in_use",
    "Number of active paid subscriptions at the last capacity read",
)

subscriptions_bootstrapped_total = Counter(
    "subscriptions_bootstrapped_total",
    "Default subscriptions created at signup",
    labelnames=["outcome"],  # created, existing, duplicate
)
