from pydantic import Field
from typing import Optional

from copo.models.user import Role
from copo.schemas.base import CamelModel

class UserCreate(CamelModel):
    name: Optional[str] = None
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    role: Role = Role.STUDENT
    department_id: Optional[int] = None
    whatsapp_number: Optional[str] = None

class UserLogin(CamelModel):
    username: str
    password: str

class UserResponse(CamelModel):
    id: int
    name: str
    username: str
    role: str
    department_id: Optional[int] = None
    whatsapp_number: Optional[str] = None

class ProfileUpdate(CamelModel):
    name: Optional[str] = None
    whatsapp_number: Optional[str] = None
    password: Optional[str] = None
    current_password: Optional[str] = None

class UserUpdate(CamelModel):
    name: Optional[str] = None
    username: Optional[str] = None
    role: Optional[Role] = None
    department_id: Optional[int] = None
    whatsapp_number: Optional[str] = None
    # Accepted only so the route can refuse it explicitly
    password: Optional[str] = None

class AdminPasswordReset(CamelModel):
    password: str = Field(..., min_length=6)

class PasswordResetRequest(CamelModel):
    username: str = Field(..., min_length=1)

class OtpVerifyRequest(CamelModel):
    user_id: int
    otp: str = Field(..., min_length=1)

class PasswordResetComplete(CamelModel):
    user_id: int
    new_password: str = Field(..., min_length=6)
