from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class DispatchQueue(str, Enum):
    PENDING = "pending"
    SHIPPED = "shipped"


class ShipRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    tracking_number: Optional[str] = Field(default=None, max_length=128)


class ExpireReservationsRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    older_than_minutes: Optional[int] = Field(default=None, ge=1)


class ExpireReservationsResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    expired_order_ids: List[str]
