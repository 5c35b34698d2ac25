from datetime import datetime
from typing import Optional
from pydantic import BaseModel, EmailStr, Field

from oralpractice.models.user import UserRole


# ── Request Bodies ────────────────────────────────────────────────────
class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=80)
    password: str = Field(..., min_length=1)

    model_config = {
        "json_schema_extra": {
            "example": {
                "username": "student1",
                "password": "123456",
            }
        }
    }


class RegisterRequest(BaseModel):
    """Public self-registration. Always creates a student account."""
    username: str = Field(..., min_length=1, max_length=80)
    password: str = Field(..., min_length=6)
    real_name: str = Field(..., min_length=1, max_length=120)
    email: Optional[EmailStr] = None
    student_no: Optional[str] = Field(None, max_length=40)
    class_name: Optional[str] = Field(None, max_length=80)


# ── Response Bodies ───────────────────────────────────────────────────
class UserInfo(BaseModel):
    """
    Safe user info sent to the frontend after login.
    password_hash is never included here.
    """
    id: int
    username: str
    role: UserRole
    real_name: str

    model_config = {"from_attributes": True}


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds
    user: UserInfo


class MeResponse(BaseModel):
    """Full profile - returned by GET /auth/me"""
    id: int
    username: str
    role: UserRole
    real_name: str
    email: Optional[str] = None
    student_no: Optional[str] = None
    class_name: Optional[str] = None
    last_login_at: Optional[datetime] = None
    created_at: datetime

    model_config = {"from_attributes": True}
