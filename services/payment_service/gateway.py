"""
MercadoPago adapter. Only the two calls the backend needs are modelled:
create a checkout preference and read a payment. Every failure mode
(timeout, transport error, non-2xx, malformed body) becomes GatewayError.
"""
from typing import Optional, Protocol

import httpx
import structlog
from fastapi import Request

from shared.config.settings import Settings
from shared.errors import GatewayError

from .schemas import CheckoutSession, CheckoutSessionRequest, PaymentInfo

logger = structlog.get_logger(__name__)


class PaymentGateway(Protocol):
    async def create_session(self, request: CheckoutSessionRequest) -> CheckoutSession: ...

    async def get_payment(self, payment_id: str) -> PaymentInfo: ...

    async def aclose(self) -> None: ...


def _error_message(resp: httpx.Response) -> Optional[str]:
    try:
        body = resp.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if isinstance(message, str):
            return message
    return None


class MercadoPagoGateway:

    def __init__(
        self,
        access_token: str,
        base_url: str = "https://api.mercadopago.com",
        timeout: float = 10.0,
        sandbox: bool = False,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.sandbox = sandbox
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "MercadoPagoGateway":
        return cls(
            access_token=settings.mercadopago_access_token,
            base_url=settings.mercadopago_api_url,
            timeout=settings.gateway_timeout_seconds,
            sandbox=settings.mercadopago_sandbox,
        )

    async def _request(self, method: str, url: str, **kwargs) -> dict:
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning("gateway_timeout", method=method, url=url)
            raise GatewayError("Payment gateway timed out") from e
        except httpx.HTTPError as e:
            logger.warning("gateway_unreachable", method=method, url=url, error=str(e))
            raise GatewayError("Payment gateway unreachable") from e

        if resp.status_code >= 400:
            message = _error_message(resp)
            logger.warning("gateway_rejected", method=method, url=url, status_code=resp.status_code, message=message)
            raise GatewayError(message, status_code=resp.status_code)

        try:
            body = resp.json()
        except ValueError as e:
            raise GatewayError("Payment gateway returned an invalid response") from e
        if not isinstance(body, dict):
            raise GatewayError("Payment gateway returned an invalid response")
        return body

    async def create_session(self, request: CheckoutSessionRequest) -> CheckoutSession:
        body = await self._request(
            "POST",
            "/checkout/preferences",
            json=request.to_payload(),
            headers={"X-Idempotency-Key": request.external_reference},
        )
        redirect_url = body.get("sandbox_init_point") if self.sandbox else body.get("init_point")
        if not body.get("id") or not redirect_url:
            raise GatewayError("Payment gateway response is missing the checkout link")
        return CheckoutSession(session_id=str(body["id"]), redirect_url=redirect_url)

    async def get_payment(self, payment_id: str) -> PaymentInfo:
        body = await self._request("GET", f"/v1/payments/{payment_id}")
        external_reference = body.get("external_reference")
        return PaymentInfo(
            payment_id=str(body.get("id", payment_id)),
            status=body.get("status"),
            status_detail=body.get("status_detail"),
            external_reference=str(external_reference) if external_reference else None,
        )

    async def aclose(self) -> None:
        await self._client.aclose()


def get_gateway(request: Request) -> PaymentGateway:
    return request.app.state.gateway
