import os
import warnings
from dataclasses import dataclass

from dotenv import load_dotenv
from fastapi import Request


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _default_database_url() -> str:
    db_user = os.getenv("POSTGRES_USER", "postgres")
    db_password = os.getenv("POSTGRES_PASSWORD", "postgres")
    db_host = os.getenv("POSTGRES_HOST", "localhost")  # In Docker, this will be 'postgres'
    db_port = os.getenv("POSTGRES_PORT", "5433")
    db_name = os.getenv("POSTGRES_DB", "ecommerce")
    return f"postgresql+asyncpg://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"


@dataclass(frozen=True)
class Settings:
    database_url: str
    db_echo: bool = False

    mercadopago_access_token: str = ""
    mercadopago_api_url: str = "https://api.mercadopago.com"
    mercadopago_sandbox: bool = False
    gateway_timeout_seconds: float = 10.0
    currency_id: str = "MXN"
    auto_return: str = ""

    frontend_url: str = "http://localhost:5173"
    backend_url: str = "http://localhost:8000"

    jwt_secret_key: str = "insecure-default-change-me"
    jwt_expire_minutes: int = 60

    reservation_ttl_minutes: int = 60

    rate_limit_enabled: bool = True
    checkout_rate_limit: str = "10/minute"
    login_rate_limit: str = "5/minute"

    otlp_endpoint: str | None = None
    metrics_enabled: bool = True

    @classmethod
    def from_env(cls) -> "Settings":
        """
        Reads configuration from the environment (and a local .env file).
        Call this once at startup and pass the result down.
        """
        load_dotenv()

        jwt_secret = os.getenv("JWT_SECRET_KEY", "")
        if not jwt_secret:
            warnings.warn(
                "JWT_SECRET_KEY is not set. Using an insecure default. "
                "Set this env var in production!",
                stacklevel=2,
            )
            jwt_secret = "insecure-default-change-me"

        if not os.getenv("MERCADOPAGO_ACCESS_TOKEN"):
            warnings.warn(
                "MERCADOPAGO_ACCESS_TOKEN is not set. Checkout sessions will be rejected by the gateway.",
                stacklevel=2,
            )

        return cls(
            database_url=os.getenv("DATABASE_URL") or _default_database_url(),
            db_echo=_env_bool("DB_ECHO", False),
            mercadopago_access_token=os.getenv("MERCADOPAGO_ACCESS_TOKEN", ""),
            mercadopago_api_url=os.getenv("MERCADOPAGO_API_URL", "https://api.mercadopago.com"),
            mercadopago_sandbox=_env_bool("MERCADOPAGO_SANDBOX", False),
            gateway_timeout_seconds=float(os.getenv("GATEWAY_TIMEOUT_SECONDS", "10")),
            currency_id=os.getenv("CURRENCY_ID", "MXN"),
            auto_return=os.getenv("AUTO_RETURN_MP", ""),
            frontend_url=os.getenv("FRONTEND_URL", "http://localhost:5173").rstrip("/"),
            backend_url=os.getenv("BACKEND_URL", "http://localhost:8000").rstrip("/"),
            jwt_secret_key=jwt_secret,
            jwt_expire_minutes=int(os.getenv("JWT_EXPIRE_MINUTES", "60")),
            reservation_ttl_minutes=int(os.getenv("RESERVATION_TTL_MINUTES", "60")),
            rate_limit_enabled=_env_bool("RATE_LIMIT_ENABLED", True),
            checkout_rate_limit=os.getenv("CHECKOUT_RATE_LIMIT", "10/minute"),
            login_rate_limit=os.getenv("LOGIN_RATE_LIMIT", "5/minute"),
            otlp_endpoint=os.getenv("OTLP_ENDPOINT") or None,
            metrics_enabled=_env_bool("METRICS_ENABLED", True),
        )


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
