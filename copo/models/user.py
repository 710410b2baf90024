from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
import enum
from copo.database import Base
from copo.utils.time_utils import get_local_time

class Role(str, enum.Enum):
    ADMIN = "admin"
    HOD = "hod"
    FACULTY = "faculty"
    STUDENT = "student"

class OtpStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    USED = "used"
    EXPIRED = "expired"

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    username = Column(String, unique=True, index=True, nullable=False)
    password = Column(String, nullable=False) # Salted hash, never the raw value
    role = Column(String, nullable=False) # Role value, stored as plain string
    # Weak reference: faculty/student should point at a department, not enforced here
    department_id = Column(Integer, nullable=True, index=True)
    whatsapp_number = Column(String, nullable=True)

class PasswordResetOtp(Base):
    __tablename__ = "password_reset_otps"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    otp_hash = Column(String, nullable=False)
    status = Column(String, default=OtpStatus.PENDING.value, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=get_local_time, nullable=False)
