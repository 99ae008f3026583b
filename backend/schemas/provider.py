from pydantic import BaseModel, Field

from backend.schemas.user import UserResponse


class LinkProviderRequest(BaseModel):
    users_id: int | str | None = Field(default=None, alias='usersId')
    specialty: str | None = None

    class Config:
        populate_by_name = True


class ProviderResponse(BaseModel):
    id: int = Field(alias='providerId')
    users_id: int = Field(alias='usersId')
    specialty: str

    class Config:
        from_attributes = True
        populate_by_name = True


class ProviderDetailResponse(ProviderResponse):
    name: str
    lastname: str
    email: str
    phone: str | None = None
    image: str | None = None


class LinkedProviderResponse(UserResponse):
    provider_id: int = Field(alias='providerId')
    specialty: str
