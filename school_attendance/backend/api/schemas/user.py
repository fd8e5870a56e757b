# school_attendance/backend/api/schemas/user.py
from typing import Optional

from pydantic import BaseModel, Field

from ...models.db_models import CamelModel


class LoginRequest(BaseModel):
    email: str
    password: Optional[str] = None


class LoginResponse(BaseModel):
    success: bool = True
    token: str


# Internal representation of JWT data
class TokenData(BaseModel):
    id: str = Field(..., min_length=1)
    role: str = Field(..., min_length=1)


class SessionUser(BaseModel):
    """Whoever the bearer token belongs to. 'id' is the row id, or 'admin'."""
    id: str
    role: str


class ListValueRequest(CamelModel):
    value: str = Field(..., min_length=1)


class ListValueEditRequest(CamelModel):
    old_value: str = Field(..., min_length=1)
    new_value: str = Field(..., min_length=1)
