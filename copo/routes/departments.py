from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
import logging

from copo.audit import audited
from copo.database import get_db
from copo.models.academics import Department
from copo.models.user import User
from copo.permissions import ADMIN_ONLY
from copo.schemas.academic_schema import DepartmentCreate, DepartmentUpdate, DepartmentResponse
from copo.services import repository

router = APIRouter(prefix="/api/departments", tags=["Departments"])
logger = logging.getLogger(__name__)

async def get_department_or_404(db: AsyncSession, department_id: int) -> Department:
    department = await repository.departments.get(db, department_id)
    if not department:
        raise HTTPException(status_code=404, detail="Department not found")
    return department

async def ensure_unique_name(db: AsyncSession, name: str, exclude_id: Optional[int] = None):
    where = [Department.name == name]
    if exclude_id is not None:
        where.append(Department.id != exclude_id)
    if await repository.departments.first(db, *where):
        raise HTTPException(status_code=409, detail="Department name already exists")

async def assign_hod(db: AsyncSession, department: Department, hod_id: Optional[int]):
    """
    Point ``department`` at ``hod_id`` and keep the users' departmentId in step.

    Only flushes. The caller commits, so the department row and the user rows
    change together or not at all.
    """
    if hod_id is not None:
        hod = await repository.users.get(db, hod_id)
        if not hod:
            raise HTTPException(status_code=400, detail="HOD user not found")
    else:
        hod = None

    previous_hod_id = department.hod_id
    if previous_hod_id is not None and previous_hod_id != hod_id:
        previous_hod = await repository.users.get(db, previous_hod_id)
        if previous_hod and previous_hod.department_id == department.id:
            logger.info(f"Removing departmentId from previous HOD {previous_hod.id}")
            previous_hod.department_id = None

    if hod is not None:
        other = await repository.departments.first(db, Department.hod_id == hod.id, Department.id != department.id)
        if other:
            logger.info(f"User {hod.id} was HOD of department {other.id}, clearing it")
            other.hod_id = None
        hod.department_id = department.id

    department.hod_id = hod_id
    await db.flush()

@router.get("", response_model=List[DepartmentResponse])
async def list_departments(db: AsyncSession = Depends(get_db)):
    return await repository.departments.list(db)

@router.get("/{department_id}", response_model=DepartmentResponse)
async def get_department(department_id: int, db: AsyncSession = Depends(get_db)):
    return await get_department_or_404(db, department_id)

@router.post("", response_model=DepartmentResponse, status_code=201)
@audited("created", "department")
async def create_department(
    department_in: DepartmentCreate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(ADMIN_ONLY)
):
    await ensure_unique_name(db, department_in.name)

    department = await repository.departments.create(db, {"name": department_in.name}, commit=False)
    if department_in.hod_id is not None:
        await assign_hod(db, department, department_in.hod_id)

    await db.commit()
    await db.refresh(department)
    return department

@router.patch("/{department_id}", response_model=DepartmentResponse)
@audited("updated", "department")
async def update_department(
    department_id: int,
    updates: DepartmentUpdate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(ADMIN_ONLY)
):
    department = await get_department_or_404(db, department_id)
    data = updates.model_dump(exclude_unset=True)

    if data.get("name"):
        await ensure_unique_name(db, data["name"], exclude_id=department.id)
        department.name = data["name"]

    if "hod_id" in data:
        await assign_hod(db, department, data["hod_id"])

    await db.commit()
    await db.refresh(department)
    return department

@router.delete("/{department_id}")
@audited("deleted", "department")
async def delete_department(
    department_id: int,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(ADMIN_ONLY)
):
    department = await get_department_or_404(db, department_id)

    if department.hod_id is not None:
        hod = await repository.users.get(db, department.hod_id)
        if hod and hod.department_id == department.id:
            hod.department_id = None

    await repository.departments.delete(db, department)
    return {"message": "Department deleted successfully"}
