from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from .jwt_handler import verify_access_token

# Keys look like "<limit>|<caller>"; the limit part comes from the app's own Settings
_LIMIT_SEPARATOR = "|"


def dispatcher_or_ip(request: Request) -> str:
    """
    Key function for SlowAPI.
    Uses the dispatcher name from a valid Authorization header when present,
    falling back to the client's IP address for anonymous checkout traffic.
    """
    auth_header = request.headers.get("Authorization")

    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1]
        payload = verify_access_token(token, request.app.state.settings.jwt_secret_key)
        if payload and "sub" in payload:
            return f"dispatcher:{payload['sub']}"

    return f"ip:{get_remote_address(request)}"


def checkout_key(request: Request) -> str:
    return f"{request.app.state.settings.checkout_rate_limit}{_LIMIT_SEPARATOR}{dispatcher_or_ip(request)}"


def login_key(request: Request) -> str:
    return f"{request.app.state.settings.login_rate_limit}{_LIMIT_SEPARATOR}{dispatcher_or_ip(request)}"


def limit_from_key(key: str) -> str:
    """Dynamic limit provider: SlowAPI hands it the key built by checkout_key/login_key."""
    return key.split(_LIMIT_SEPARATOR, 1)[0]


limiter = Limiter(key_func=dispatcher_or_ip)


def configure_limiter(enabled: bool = True) -> Limiter:
    limiter.enabled = enabled
    limiter.reset()
    return limiter
