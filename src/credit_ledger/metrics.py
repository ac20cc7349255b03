"""Business metrics for Prometheus monitoring."""
from prometheus_client import Counter, Histogram

# Purchase metrics
purchases_initiated_total = Counter(
    "purchases_initiated_total",
    "Credit purchases and subscriptions initiated",
    labelnames=["kind", "billing_type", "outcome"],  # outcome: created, gateway_error, timeout
)

# Reconciliation metrics
webhook_events_total = Counter(
    "webhook_events_total",
    "Gateway webhook events processed",
    labelnames=["event", "outcome"],
)

credits_granted_total = Counter(
    "credits_granted_total",
    "Extra credits granted by confirmed purchases",
)

subscription_renewals_total = Counter(
    "subscription_renewals_total",
    "Subscription renewals recorded",
)

# Periodic job metrics
billing_cycle_teams_total = Counter(
    "billing_cycle_teams_total",
    "Teams handled by the billing cycle roller",
    labelnames=["outcome"],  # processed, failed
)

low_balance_alerts_total = Counter(
    "low_balance_alerts_total",
    "Low-balance alerts sent",
)

invoice_poll_seconds = Histogram(
    "invoice_poll_seconds",
    "Time spent waiting for the first subscription invoice",
    buckets=(1, 2, 5, 10, 20, 30, 60),
)
