from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel

# Maximum length the gateway accepts for item id/title/description
GATEWAY_FIELD_LIMIT = 250


def clamp(value: Optional[str], limit: int = GATEWAY_FIELD_LIMIT) -> str:
    return (value or "")[:limit]


class CheckoutItem(BaseModel):
    id: str
    title: str
    description: str = ""
    quantity: int
    unit_price: Decimal
    currency_id: str


class Payer(BaseModel):
    name: str
    email: str
    phone: str = ""


class BackUrls(BaseModel):
    success: str
    failure: str
    pending: str


class CheckoutSessionRequest(BaseModel):
    items: List[CheckoutItem]
    payer: Payer
    back_urls: BackUrls
    notification_url: str
    external_reference: str
    auto_return: Optional[str] = None

    def to_payload(self) -> dict:
        """Body for the gateway's create-preference call."""
        body = {
            "items": [
                {
                    "id": item.id,
                    "title": item.title,
                    "description": item.description,
                    "quantity": item.quantity,
                    "unit_price": float(item.unit_price),
                    "currency_id": item.currency_id,
                }
                for item in self.items
            ],
            "payer": {
                "name": self.payer.name,
                "email": self.payer.email,
                "phone": {"number": self.payer.phone},
            },
            "back_urls": self.back_urls.model_dump(),
            "notification_url": self.notification_url,
            "external_reference": self.external_reference,
        }
        if self.auto_return:
            body["auto_return"] = self.auto_return
        return body


class CheckoutSession(BaseModel):
    session_id: str
    redirect_url: str


class PaymentInfo(BaseModel):
    payment_id: str
    status: Optional[str] = None
    status_detail: Optional[str] = None
    external_reference: Optional[str] = None
