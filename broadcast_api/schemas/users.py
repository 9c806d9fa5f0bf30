from __future__ import annotations

from datetime import date

from pydantic import BaseModel, EmailStr, Field


class UserCreate(BaseModel):
    email: EmailStr
    phone_number: str = Field(..., min_length=1, max_length=30)
    date_of_birth: date
    password: str = Field(..., min_length=8, max_length=72)


class UserRead(BaseModel):
    id: int
    email: str
    phone_number: str
    date_of_birth: date

    model_config = {"from_attributes": True}
