from .setup import setup_observability
from .metrics import (
    ecomm_checkout_total,
    ecomm_checkout_duration_seconds,
    ecomm_saga_compensation_total,
    ecomm_payment_notifications_total,
    ecomm_stock_released_units_total,
)
