from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from brokerage.models.domain import Department, RoleName


def _normalize_email(v: str) -> str:
    s = str(v or "").strip().lower()
    if "@" not in s:
        raise ValueError("Invalid email address")
    return s


class SignupRequest(BaseModel):
    email: str  # plain str: internal .local domains do not pass EmailStr
    name: str = Field(..., min_length=1, max_length=255)
    password: str = Field(..., min_length=6)
    department: Department

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return _normalize_email(v)


class UserCreate(SignupRequest):
    role: RoleName = RoleName.staff


class UserRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    department: Department
    role: RoleName
    active: bool
    created_at: Optional[datetime] = None
