from prometheus_client import Counter, Histogram

# Business Metrics
ecomm_checkout_total = Counter(
    "ecomm_checkout_total",
    "Total checkouts processed",
    ["status"] # Labels: 'created', 'reused', 'failed'
)

ecomm_checkout_duration_seconds = Histogram(
    "ecomm_checkout_duration_seconds",
    "Checkout duration in seconds"
)

ecomm_order_status_transitions_total = Counter(
    "ecomm_order_status_transitions_total",
    "Order status changes written to the audit trail",
    ["source", "to_status"] # Labels: source='system'|'admin'|'webhook'
)

ecomm_webhook_events_total = Counter(
    "ecomm_webhook_events_total",
    "Payment processor webhook events handled",
    ["type", "outcome"] # Labels: outcome='applied'|'already_applied'|'ignored'
)
