from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .models import StoreUser


class RegisterDTO(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: str = Field(min_length=3, max_length=254)
    phone: str = Field(default="", max_length=32)
    address: str = Field(default="", max_length=1000)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Name is required")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        local, _, domain = v.strip().partition("@")
        if not local or "." not in domain:
            raise ValueError("Invalid email address")
        return v


class UserReadDTO(BaseModel):
    id: int
    name: str
    email: str
    phone: Optional[str] = None
    address: str = ""
    role: str


def user_to_dict(user: StoreUser) -> dict:
    return UserReadDTO(
        id=user.id,
        name=user.name,
        email=user.email,
        phone=user.phone or None,
        address=user.address,
        role=user.role,
    ).model_dump()
