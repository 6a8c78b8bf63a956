from datetime import datetime
from decimal import Decimal
from typing import Annotated, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, PlainSerializer
from pydantic.alias_generators import to_camel

# Prices travel as JSON numbers, but are validated and stored as exact decimals
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CustomerDetails(CamelModel):
    name: str = Field(min_length=1, max_length=255)
    email: EmailStr
    phone: str = Field(default="", max_length=64)


class OrderItemCreate(CamelModel):
    product_id: str = Field(min_length=1, max_length=128)
    name: str = Field(min_length=1, max_length=255)
    presentation: str = Field(default="", max_length=255)
    quantity: int = Field(gt=0, le=10_000, strict=True)
    unit_price: Decimal = Field(ge=0, max_digits=12, decimal_places=2, allow_inf_nan=False)


class OrderCreate(CamelModel):
    customer_details: CustomerDetails
    items: List[OrderItemCreate] = Field(min_length=1, max_length=100)
    total_amount: Decimal = Field(ge=0, max_digits=12, decimal_places=2, allow_inf_nan=False)
    referral_code: Optional[str] = Field(default=None, max_length=64)


class CheckoutResponse(CamelModel):
    redirect_url: str


class OrderItemResponse(CamelModel):
    product_id: str
    name: str
    presentation: Optional[str] = None
    quantity: int
    unit_price: Money
    line_total: Money


class PaymentDetails(CamelModel):
    method: str
    external_preference_id: Optional[str] = None
    external_payment_id: Optional[str] = None
    external_payment_status: Optional[str] = None
    paid_at: Optional[datetime] = None


class ShippingDetails(CamelModel):
    method: str
    cost: Money
    tracking_number: Optional[str] = None


class OrderResponse(CamelModel):
    id: str
    customer_details: CustomerDetails
    items: List[OrderItemResponse]
    total_amount: Money
    status: str
    payment_details: PaymentDetails
    shipping_details: ShippingDetails
    referral_code: Optional[str] = None
    referring_agent_name: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    shipped_at: Optional[datetime] = None

    @classmethod
    def from_order(cls, order, agent_name: Optional[str] = None) -> "OrderResponse":
        return cls(
            id=order.id,
            customer_details=CustomerDetails(
                name=order.customer_name,
                email=order.customer_email,
                phone=order.customer_phone or "",
            ),
            items=[
                OrderItemResponse(
                    product_id=item.product_id,
                    name=item.name,
                    presentation=item.presentation,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    line_total=item.line_total,
                )
                for item in order.items
            ],
            total_amount=order.total_amount,
            status=order.status,
            payment_details=PaymentDetails(
                method=order.payment_method,
                external_preference_id=order.external_preference_id,
                external_payment_id=order.external_payment_id,
                external_payment_status=order.external_payment_status,
                paid_at=order.paid_at,
            ),
            shipping_details=ShippingDetails(
                method=order.shipping_method,
                cost=order.shipping_cost,
                tracking_number=order.tracking_number,
            ),
            referral_code=order.referral_code,
            referring_agent_name=agent_name,
            created_at=order.created_at,
            updated_at=order.updated_at,
            shipped_at=order.shipped_at,
        )


class OrderStatusResponse(CamelModel):
    """Public view used by the payment return pages."""

    id: str
    status: str
    total_amount: Money
    payment_status: Optional[str] = None
    paid_at: Optional[datetime] = None
