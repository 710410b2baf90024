from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from copo.audit import audited, record_activity
from copo.database import get_db
from copo.models.user import Role, User
from copo.permissions import parse_role
from copo.schemas.auth_schema import (
    UserCreate, UserLogin, UserResponse, ProfileUpdate,
    PasswordResetRequest, OtpVerifyRequest, PasswordResetComplete,
)
from copo.security import (
    get_password_hash, verify_password, login_user,
    get_current_user, get_optional_user,
)
from copo.services import repository
from copo.services.otp import OtpService, OtpError
from copo.services.whatsapp import whatsapp_service

router = APIRouter(prefix="/api", tags=["Auth"])
logger = logging.getLogger(__name__)

@router.get("/system/has-users")
async def has_users(db: AsyncSession = Depends(get_db)):
    count = await repository.users.count(db)
    return {"hasUsers": count > 0}

@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
@audited("created", "user")
async def register(
    request: Request,
    user_in: UserCreate,
    db: AsyncSession = Depends(get_db),
    current_user: Optional[User] = Depends(get_optional_user)
):
    role = Role(user_in.role)

    if current_user:
        creator_role = parse_role(current_user.role)
        if creator_role is Role.ADMIN:
            pass
        elif creator_role is Role.HOD:
            if role not in (Role.FACULTY, Role.STUDENT):
                raise HTTPException(status_code=403, detail="HODs can only register faculty members and students")
            if user_in.department_id is None:
                raise HTTPException(status_code=400, detail="Department ID is required when registering users")
        else:
            raise HTTPException(status_code=403, detail="You don't have permission to register new users")
    else:
        # First ever account bootstraps the system and is always an admin
        if await repository.users.count(db) > 0:
            raise HTTPException(status_code=403, detail="Registration is restricted. Please contact an administrator.")
        logger.info("First user registering, forcing admin role")
        role = Role.ADMIN

    existing = await repository.users.first(db, User.username == user_in.username)
    if existing:
        raise HTTPException(status_code=400, detail="Username already exists")

    new_user = await repository.users.create(db, {
        "name": user_in.name or user_in.username,
        "username": user_in.username,
        "password": get_password_hash(user_in.password),
        "role": role.value,
        "department_id": user_in.department_id,
        "whatsapp_number": user_in.whatsapp_number or None,
    })

    if current_user:
        logger.info(f"User {current_user.id} created user {new_user.id} with role {new_user.role}")
        return new_user

    # Self-registration (bootstrap): start a session for the new admin
    login_user(request, new_user)
    return new_user

@router.post("/login", response_model=UserResponse)
async def login(request: Request, user_in: UserLogin, db: AsyncSession = Depends(get_db)):
    user = await repository.users.first(db, User.username == user_in.username)

    if not user or not verify_password(user_in.password, user.password):
        logger.info(f"Login failed for username {user_in.username}")
        raise HTTPException(status_code=401, detail="Invalid username or password")

    login_user(request, user)
    return user

@router.post("/logout")
async def logout(request: Request):
    request.session.clear()
    return {"message": "Logged out"}

@router.get("/user", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    return current_user

@router.patch("/user/profile", response_model=UserResponse)
@audited("updated", "profile")
async def update_profile(
    updates: ProfileUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    allowed = {}
    if updates.name:
        allowed["name"] = updates.name

    fields_set = updates.model_fields_set
    if "whatsapp_number" in fields_set:
        # Empty string clears the number
        allowed["whatsapp_number"] = updates.whatsapp_number or None

    if updates.password:
        if not updates.current_password or not verify_password(updates.current_password, current_user.password):
            raise HTTPException(status_code=400, detail="Current password is incorrect")
        allowed["password"] = get_password_hash(updates.password)

    if not allowed:
        raise HTTPException(status_code=400, detail="No valid fields to update")

    return await repository.users.update(db, current_user, allowed)

# --- Password reset over WhatsApp OTP ---

@router.post("/reset-password/request")
async def request_password_reset(req: PasswordResetRequest, db: AsyncSession = Depends(get_db)):
    user = await repository.users.first(db, User.username == req.username)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    if not user.whatsapp_number:
        raise HTTPException(
            status_code=400,
            detail="User does not have a WhatsApp number registered. Please contact administrator."
        )

    otp = await OtpService.issue(db, user.id)
    sent = await whatsapp_service.send_otp(user.whatsapp_number, otp)
    if not sent:
        raise HTTPException(status_code=500, detail="Failed to send OTP. Please try again later.")

    await record_activity(db, user.id, "requested", "password-reset", details="Password reset requested")

    return {
        "success": True,
        "message": "OTP sent to your WhatsApp number",
        "userId": user.id
    }

@router.post("/reset-password/verify")
async def verify_password_reset(req: OtpVerifyRequest, db: AsyncSession = Depends(get_db)):
    user = await repository.users.get(db, req.user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    try:
        await OtpService.verify(db, user.id, req.otp)
    except OtpError as e:
        raise HTTPException(status_code=400, detail=str(e))

    await record_activity(db, user.id, "verified", "password-reset", details="OTP verified for password reset")

    return {
        "success": True,
        "message": "OTP verified successfully",
        "userId": user.id
    }

@router.post("/reset-password/complete")
async def complete_password_reset(req: PasswordResetComplete, db: AsyncSession = Depends(get_db)):
    user = await repository.users.get(db, req.user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")

    try:
        await OtpService.consume(db, user.id)
    except OtpError as e:
        raise HTTPException(status_code=400, detail=str(e))

    user.password = get_password_hash(req.new_password)
    await record_activity(db, user.id, "reset", "password", details="Password reset completed", commit=False)
    await db.commit()

    return {"success": True, "message": "Password reset successfully"}
