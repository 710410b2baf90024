import secrets
from datetime import timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from copo.config import Config
from copo.models.user import OtpStatus, PasswordResetOtp
from copo.security import get_password_hash, verify_password
from copo.services import repository
from copo.utils.time_utils import get_local_time

class OtpError(Exception):
    """Raised when an OTP cannot be accepted. The message is safe to show."""

class OtpService:
    """
    Password-reset OTPs kept in the database with an expiry timestamp.

    Only a hash of the code is stored. Lifecycle per code:
    pending -> verified -> used, or pending -> expired.
    """

    @staticmethod
    def generate_code(length: int = 6) -> str:
        return "".join(secrets.choice("0123456789") for _ in range(length))

    @staticmethod
    async def latest(db: AsyncSession, user_id: int) -> Optional[PasswordResetOtp]:
        rows = await repository.password_reset_otps.list(
            db,
            PasswordResetOtp.user_id == user_id,
            order_by=PasswordResetOtp.id.desc(),
            limit=1,
        )
        return rows[0] if rows else None

    @staticmethod
    async def issue(db: AsyncSession, user_id: int) -> str:
        """Create a fresh code for the user, expiring any still-pending ones."""
        pending = await repository.password_reset_otps.list(
            db,
            PasswordResetOtp.user_id == user_id,
            PasswordResetOtp.status == OtpStatus.PENDING.value,
        )
        for row in pending:
            row.status = OtpStatus.EXPIRED.value

        code = OtpService.generate_code()
        await repository.password_reset_otps.create(db, {
            "user_id": user_id,
            "otp_hash": get_password_hash(code),
            "status": OtpStatus.PENDING.value,
            "expires_at": get_local_time() + timedelta(minutes=Config.OTP_EXPIRY_MINUTES),
        })
        return code

    @staticmethod
    async def verify(db: AsyncSession, user_id: int, code: str) -> PasswordResetOtp:
        record = await OtpService.latest(db, user_id)
        if record is None:
            raise OtpError("No OTP request found. Please request a new OTP.")
        if record.status in (OtpStatus.VERIFIED.value, OtpStatus.USED.value):
            raise OtpError("OTP has already been used. Please request a new one.")
        if record.status == OtpStatus.EXPIRED.value or get_local_time() > record.expires_at:
            record.status = OtpStatus.EXPIRED.value
            await db.commit()
            raise OtpError("OTP has expired. Please request a new one.")
        if not verify_password(code, record.otp_hash):
            raise OtpError("Invalid OTP. Please try again.")

        record.status = OtpStatus.VERIFIED.value
        await db.commit()
        return record

    @staticmethod
    async def consume(db: AsyncSession, user_id: int) -> PasswordResetOtp:
        """Mark the verified code as used. Caller commits along with the password change."""
        record = await OtpService.latest(db, user_id)
        if record is None or record.status != OtpStatus.VERIFIED.value:
            raise OtpError("Please verify your OTP before setting a new password")
        if get_local_time() > record.expires_at:
            record.status = OtpStatus.EXPIRED.value
            await db.commit()
            raise OtpError("OTP has expired. Please request a new one.")
        record.status = OtpStatus.USED.value
        return record
