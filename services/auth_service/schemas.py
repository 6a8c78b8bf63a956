from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class DispatcherLogin(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1, max_length=128)


class DispatcherLoginResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    username: str
    role: str
    access_token: str
    token_type: str = "bearer"


class DispatcherResponse(BaseModel):
    username: str
    role: str
