from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class StockLookupRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    product_ids: list[str] = Field(max_length=500)


class StockUpdate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    new_stock: int = Field(ge=0, strict=True)


class StockResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    product_id: str
    stock: int
