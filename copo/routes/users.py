from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import logging

from copo.audit import audited
from copo.database import get_db
from copo.models.academics import Department
from copo.models.user import Role, User
from copo.permissions import ADMIN_OR_HOD, parse_role
from copo.schemas.auth_schema import UserResponse, UserUpdate, AdminPasswordReset
from copo.security import get_current_user, get_password_hash
from copo.services import repository

router = APIRouter(prefix="/api/users", tags=["Users"])
logger = logging.getLogger(__name__)

async def get_user_or_404(db: AsyncSession, user_id: int) -> User:
    user = await repository.users.get(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user

HOD_MANAGED_ROLES = (Role.FACULTY, Role.STUDENT)

def ensure_can_manage(current_user: User, target: User, new_role: Optional[str] = None):
    """HODs may only touch faculty and student accounts, and only keep them in those roles."""
    if parse_role(current_user.role) is not Role.HOD:
        return
    if parse_role(target.role) not in HOD_MANAGED_ROLES:
        raise HTTPException(status_code=403, detail="HODs can only manage faculty members and students")
    if new_role is not None and parse_role(new_role) not in HOD_MANAGED_ROLES:
        raise HTTPException(status_code=403, detail="HODs can only assign the faculty or student role")

@router.get("", response_model=List[UserResponse])
async def list_users(db: AsyncSession = Depends(get_db), _: User = Depends(ADMIN_OR_HOD)):
    return await repository.users.list(db)

@router.get("/teaching", response_model=List[UserResponse])
async def list_teaching_users(db: AsyncSession = Depends(get_db), _: User = Depends(get_current_user)):
    # Faculty and HODs can both be assigned subjects
    faculty = await repository.users.list(db, User.role == Role.FACULTY.value)
    hods = await repository.users.list(db, User.role == Role.HOD.value)
    return faculty + hods

@router.get("/role/{role}", response_model=List[UserResponse])
async def list_users_by_role(role: str, db: AsyncSession = Depends(get_db), _: User = Depends(ADMIN_OR_HOD)):
    parsed = parse_role(role)
    if parsed is None:
        raise HTTPException(status_code=400, detail="Invalid role")
    return await repository.users.list(db, User.role == parsed.value)

@router.get("/department/{department_id}", response_model=List[UserResponse])
async def list_users_by_department(department_id: int, db: AsyncSession = Depends(get_db), _: User = Depends(ADMIN_OR_HOD)):
    return await repository.users.list(db, User.department_id == department_id)

@router.get("/{user_id}", response_model=UserResponse)
async def get_user(user_id: int, db: AsyncSession = Depends(get_db), _: User = Depends(ADMIN_OR_HOD)):
    return await get_user_or_404(db, user_id)

@router.patch("/{user_id}", response_model=UserResponse)
@audited("updated", "user")
async def update_user(
    user_id: int,
    updates: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(ADMIN_OR_HOD)
):
    if updates.password is not None:
        raise HTTPException(status_code=400, detail="Password updates not supported through this endpoint")

    user = await get_user_or_404(db, user_id)
    ensure_can_manage(current_user, user, updates.role)
    data = updates.model_dump(exclude_unset=True, exclude={"password"})
    for field in ("name", "username", "role"):
        # Required columns, an explicit null means no change
        if field in data and data[field] is None:
            del data[field]
    if "whatsapp_number" in data:
        data["whatsapp_number"] = data["whatsapp_number"] or None
    if "username" in data and data["username"] != user.username:
        taken = await repository.users.first(db, User.username == data["username"])
        if taken:
            raise HTTPException(status_code=409, detail="Username already exists")

    return await repository.users.update(db, user, data)

@router.post("/{user_id}/reset-password")
@audited("reset-password", "user")
async def reset_user_password(
    user_id: int,
    req: AdminPasswordReset,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(ADMIN_OR_HOD)
):
    user = await get_user_or_404(db, user_id)
    ensure_can_manage(current_user, user)
    await repository.users.update(db, user, {"password": get_password_hash(req.password)})
    return {"message": "Password reset successfully"}

@router.delete("/{user_id}")
@audited("deleted", "user")
async def delete_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(ADMIN_OR_HOD)
):
    user = await get_user_or_404(db, user_id)

    if current_user.id == user.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    ensure_can_manage(current_user, user)

    if parse_role(user.role) is Role.HOD:
        department = await repository.departments.first(db, Department.hod_id == user.id)
        if department:
            raise HTTPException(
                status_code=400,
                detail="This HOD is associated with a department. Please reassign or delete the department first."
            )

    await repository.users.delete(db, user)
    logger.info(f"User {current_user.id} deleted user {user_id}")
    return {"message": "User deleted successfully"}
