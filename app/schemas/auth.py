"""Auth schemas."""
from datetime import datetime

from pydantic import BaseModel, EmailStr, field_validator

PASSWORD_MIN_LENGTH = 8


class UserCreate(BaseModel):
    email: EmailStr
    password: str
    full_name: str | None = None
    business_name: str | None = None
    phone: str | None = None
    address: str | None = None
    postal_code: str | None = None
    city: str | None = None
    siret: str | None = None

    @field_validator("password")
    @classmethod
    def password_long_enough(cls, v: str) -> str:
        if len(v or "") < PASSWORD_MIN_LENGTH:
            raise ValueError(f"Password must have at least {PASSWORD_MIN_LENGTH} characters.")
        return v


class UserLogin(BaseModel):
    email: EmailStr
    password: str


class UserUpdate(BaseModel):
    full_name: str | None = None
    business_name: str | None = None
    phone: str | None = None
    address: str | None = None
    postal_code: str | None = None
    city: str | None = None
    siret: str | None = None
    logo_url: str | None = None


class UserResponse(BaseModel):
    id: int
    email: str
    full_name: str | None = None
    business_name: str | None = None
    phone: str | None = None
    address: str | None = None
    postal_code: str | None = None
    city: str | None = None
    siret: str | None = None
    logo_url: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
