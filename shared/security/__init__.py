from .jwt_handler import create_access_token, verify_access_token
from .dependencies import CurrentDispatcher, get_current_dispatcher
from .rate_limiter import checkout_key, configure_limiter, dispatcher_or_ip, limit_from_key, limiter, login_key

__all__ = [
    "create_access_token",
    "verify_access_token",
    "CurrentDispatcher",
    "get_current_dispatcher",
    "checkout_key",
    "configure_limiter",
    "dispatcher_or_ip",
    "limit_from_key",
    "limiter",
    "login_key",
]
