from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional, List
from datetime import datetime

from oralpractice.models.user import UserRole


class UserCreate(BaseModel):
    username: str = Field(..., min_length=1, max_length=80)
    password: str = Field(..., min_length=6)
    role: UserRole
    real_name: str = Field(..., min_length=1, max_length=120)
    email: Optional[EmailStr] = None
    student_no: Optional[str] = Field(None, max_length=40)
    class_name: Optional[str] = Field(None, max_length=80)


class UserUpdate(BaseModel):
    # role is immutable; password only changes when given
    username: str = Field(..., min_length=1, max_length=80)
    real_name: str = Field(..., min_length=1, max_length=120)
    password: Optional[str] = Field(None, max_length=128)
    email: Optional[EmailStr] = None
    student_no: Optional[str] = Field(None, max_length=40)
    class_name: Optional[str] = Field(None, max_length=80)


class UserOut(BaseModel):
    id: int
    username: str
    role: UserRole
    real_name: str
    email: Optional[str] = None
    student_no: Optional[str] = None
    class_name: Optional[str] = None
    created_at: datetime
    last_login_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class UserListItemOut(UserOut):
    exercise_count: int = 0
    last_exercise_time: Optional[datetime] = None


class StudentImportRow(BaseModel):
    # kept loose so one bad row is reported, not the whole request rejected
    username: Optional[str] = None
    password: Optional[str] = None
    real_name: Optional[str] = None
    email: Optional[str] = None
    student_no: Optional[str] = None
    class_name: Optional[str] = None


class BatchImportRequest(BaseModel):
    students: List[StudentImportRow]


class ImportedRow(BaseModel):
    index: int
    username: str
    user_id: int


class FailedRow(BaseModel):
    index: int
    username: Optional[str] = None
    error: str


class BatchImportResponse(BaseModel):
    message: str
    success: List[ImportedRow]
    failed: List[FailedRow]
