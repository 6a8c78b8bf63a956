from prometheus_client import Counter, Histogram

# Business Metrics
ecomm_checkout_total = Counter(
    "ecomm_checkout_total",
    "Total checkouts processed",
    ["status"]  # Labels: 'success', 'insufficient_stock', 'gateway_error', 'failed'
)

ecomm_checkout_duration_seconds = Histogram(
    "ecomm_checkout_duration_seconds",
    "Checkout duration in seconds"
)

ecomm_saga_compensation_total = Counter(
    "ecomm_saga_compensation_total",
    "Total saga compensations triggered",
    ["step_name", "outcome"]  # outcome: 'success' or 'failed'
)

ecomm_payment_notifications_total = Counter(
    "ecomm_payment_notifications_total",
    "Payment notifications received",
    ["outcome"]  # Labels: 'applied', 'duplicate', 'stale', 'conflict', 'ignored', 'gateway_error', 'order_not_found', 'error'
)

ecomm_stock_released_units_total = Counter(
    "ecomm_stock_released_units_total",
    "Units of stock returned to inventory",
    ["reason"]  # Labels: 'checkout_compensation', 'payment_failed', 'reservation_expired'
)
