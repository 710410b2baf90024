from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from copo.audit import audited
from copo.database import get_db
from copo.models.assessment import Attainment
from copo.models.user import User
from copo.permissions import ADMIN_OR_HOD, FACULTY_OR_HOD
from copo.schemas.assessment_schema import AttainmentCreate, AttainmentResponse
from copo.services import repository
from copo.services.attainment import AttainmentService

router = APIRouter(prefix="/api/attainments", tags=["Attainments"])

@router.get("/subject/{subject_id}", response_model=List[AttainmentResponse])
async def list_subject_attainments(subject_id: int, db: AsyncSession = Depends(get_db)):
    return await repository.attainments.list(
        db,
        Attainment.subject_id == subject_id,
        order_by=Attainment.calculated_at.desc(),
    )

@router.get("/department/{department_id}", response_model=List[AttainmentResponse])
async def list_department_attainments(department_id: int, db: AsyncSession = Depends(get_db)):
    return await repository.attainments.list(
        db,
        Attainment.department_id == department_id,
        order_by=Attainment.calculated_at.desc(),
    )

@router.post("", response_model=AttainmentResponse, status_code=201)
@audited("created", "attainment")
async def create_attainment(
    attainment_in: AttainmentCreate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(FACULTY_OR_HOD)
):
    if attainment_in.subject_id is None and attainment_in.department_id is None:
        raise HTTPException(status_code=400, detail="Either subjectId or departmentId is required")
    if attainment_in.subject_id is not None and not await repository.subjects.get(db, attainment_in.subject_id):
        raise HTTPException(status_code=404, detail="Subject not found")
    if attainment_in.department_id is not None and not await repository.departments.get(db, attainment_in.department_id):
        raise HTTPException(status_code=404, detail="Department not found")
    return await repository.attainments.create(db, attainment_in.model_dump())

@router.post("/calculate/subject/{subject_id}", response_model=List[AttainmentResponse], status_code=201)
@audited("calculated", "attainment")
async def calculate_subject_attainment(
    subject_id: int,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(FACULTY_OR_HOD)
):
    subject = await repository.subjects.get(db, subject_id)
    if not subject:
        raise HTTPException(status_code=404, detail="Subject not found")
    return await AttainmentService.calculate_subject(db, subject)

@router.post("/calculate/department/{department_id}", response_model=AttainmentResponse, status_code=201)
@audited("calculated", "attainment")
async def calculate_department_attainment(
    department_id: int,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(ADMIN_OR_HOD)
):
    department = await repository.departments.get(db, department_id)
    if not department:
        raise HTTPException(status_code=404, detail="Department not found")
    return await AttainmentService.calculate_department(db, department.id)
