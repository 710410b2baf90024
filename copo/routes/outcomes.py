from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from copo.audit import audited
from copo.database import get_db
from copo.models.academics import CourseOutcome, ProgramOutcome, CoPOMapping
from copo.models.user import User
from copo.permissions import ADMIN_OR_HOD, FACULTY_ONLY
from copo.schemas.academic_schema import (
    CourseOutcomeCreate, CourseOutcomeUpdate, CourseOutcomeResponse,
    ProgramOutcomeCreate, ProgramOutcomeUpdate, ProgramOutcomeResponse,
    CoPOMappingCreate, CoPOMappingUpdate, CoPOMappingResponse,
)
from copo.services import repository
from copo.services.attainment import AttainmentService

course_outcome_router = APIRouter(prefix="/api/course-outcomes", tags=["Course Outcomes"])
program_outcome_router = APIRouter(prefix="/api/program-outcomes", tags=["Program Outcomes"])
mapping_router = APIRouter(prefix="/api/co-po-mappings", tags=["CO-PO Mappings"])

async def get_or_404(db: AsyncSession, repo, obj_id: int, label: str):
    obj = await repo.get(db, obj_id)
    if not obj:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return obj

# --- Course outcomes ---

@course_outcome_router.get("/subject/{subject_id}", response_model=List[CourseOutcomeResponse])
async def list_course_outcomes(subject_id: int, db: AsyncSession = Depends(get_db)):
    return await repository.course_outcomes.list(
        db, CourseOutcome.subject_id == subject_id, order_by=CourseOutcome.outcome_number
    )

@course_outcome_router.get("/{outcome_id}", response_model=CourseOutcomeResponse)
async def get_course_outcome(outcome_id: int, db: AsyncSession = Depends(get_db)):
    return await get_or_404(db, repository.course_outcomes, outcome_id, "Course outcome")

@course_outcome_router.post("", response_model=CourseOutcomeResponse, status_code=201)
@audited("created", "course outcome")
async def create_course_outcome(
    outcome_in: CourseOutcomeCreate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(FACULTY_ONLY)
):
    await get_or_404(db, repository.subjects, outcome_in.subject_id, "Subject")
    outcome = await repository.course_outcomes.create(db, outcome_in.model_dump(), commit=False)
    await AttainmentService.invalidate_subject(db, outcome.subject_id)
    await db.commit()
    await db.refresh(outcome)
    return outcome

@course_outcome_router.patch("/{outcome_id}", response_model=CourseOutcomeResponse)
@audited("updated", "course outcome")
async def update_course_outcome(
    outcome_id: int,
    updates: CourseOutcomeUpdate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(FACULTY_ONLY)
):
    outcome = await get_or_404(db, repository.course_outcomes, outcome_id, "Course outcome")
    await AttainmentService.invalidate_subject(db, outcome.subject_id)
    return await repository.course_outcomes.update(db, outcome, updates.model_dump(exclude_unset=True, exclude_none=True))

@course_outcome_router.delete("/{outcome_id}")
@audited("deleted", "course outcome")
async def delete_course_outcome(outcome_id: int, db: AsyncSession = Depends(get_db), _: User = Depends(FACULTY_ONLY)):
    outcome = await get_or_404(db, repository.course_outcomes, outcome_id, "Course outcome")
    await AttainmentService.invalidate_subject(db, outcome.subject_id)
    await repository.co_po_mappings.delete_where(db, CoPOMapping.course_outcome_id == outcome.id, commit=False)
    await repository.course_outcomes.delete(db, outcome)
    return {"message": "Course outcome deleted successfully"}

# --- Program outcomes ---

@program_outcome_router.get("/department/{department_id}", response_model=List[ProgramOutcomeResponse])
async def list_program_outcomes(department_id: int, db: AsyncSession = Depends(get_db)):
    return await repository.program_outcomes.list(
        db, ProgramOutcome.department_id == department_id, order_by=ProgramOutcome.outcome_number
    )

@program_outcome_router.post("", response_model=ProgramOutcomeResponse, status_code=201)
@audited("created", "program outcome")
async def create_program_outcome(
    outcome_in: ProgramOutcomeCreate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(ADMIN_OR_HOD)
):
    await get_or_404(db, repository.departments, outcome_in.department_id, "Department")
    return await repository.program_outcomes.create(db, outcome_in.model_dump())

@program_outcome_router.patch("/{outcome_id}", response_model=ProgramOutcomeResponse)
@audited("updated", "program outcome")
async def update_program_outcome(
    outcome_id: int,
    updates: ProgramOutcomeUpdate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(ADMIN_OR_HOD)
):
    outcome = await get_or_404(db, repository.program_outcomes, outcome_id, "Program outcome")
    # Renumbering changes the labels stored in the reports
    await AttainmentService.invalidate_department(db, outcome.department_id)
    return await repository.program_outcomes.update(db, outcome, updates.model_dump(exclude_unset=True, exclude_none=True))

@program_outcome_router.delete("/{outcome_id}")
@audited("deleted", "program outcome")
async def delete_program_outcome(outcome_id: int, db: AsyncSession = Depends(get_db), _: User = Depends(ADMIN_OR_HOD)):
    outcome = await get_or_404(db, repository.program_outcomes, outcome_id, "Program outcome")
    await AttainmentService.invalidate_department(db, outcome.department_id)
    await repository.co_po_mappings.delete_where(db, CoPOMapping.program_outcome_id == outcome.id, commit=False)
    await repository.program_outcomes.delete(db, outcome)
    return {"message": "Program outcome deleted successfully"}

# --- CO-PO mappings ---

@mapping_router.get("/course-outcome/{outcome_id}", response_model=List[CoPOMappingResponse])
async def list_mappings_by_course_outcome(outcome_id: int, db: AsyncSession = Depends(get_db)):
    return await repository.co_po_mappings.list(db, CoPOMapping.course_outcome_id == outcome_id)

@mapping_router.get("/program-outcome/{outcome_id}", response_model=List[CoPOMappingResponse])
async def list_mappings_by_program_outcome(outcome_id: int, db: AsyncSession = Depends(get_db)):
    return await repository.co_po_mappings.list(db, CoPOMapping.program_outcome_id == outcome_id)

@mapping_router.get("/subject/{subject_id}", response_model=List[CoPOMappingResponse])
async def list_mappings_by_subject(subject_id: int, db: AsyncSession = Depends(get_db)):
    outcomes = await repository.course_outcomes.list(db, CourseOutcome.subject_id == subject_id)
    if not outcomes:
        return []
    return await repository.co_po_mappings.list(
        db, CoPOMapping.course_outcome_id.in_([co.id for co in outcomes])
    )

@mapping_router.post("", response_model=CoPOMappingResponse, status_code=201)
@audited("created", "CO-PO mapping")
async def create_mapping(
    mapping_in: CoPOMappingCreate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(FACULTY_ONLY)
):
    course_outcome = await get_or_404(db, repository.course_outcomes, mapping_in.course_outcome_id, "Course outcome")
    await get_or_404(db, repository.program_outcomes, mapping_in.program_outcome_id, "Program outcome")

    mapping = await repository.co_po_mappings.create(db, mapping_in.model_dump(), commit=False)
    await AttainmentService.invalidate_subject(db, course_outcome.subject_id)
    await db.commit()
    await db.refresh(mapping)
    return mapping

@mapping_router.patch("/{mapping_id}", response_model=CoPOMappingResponse)
@audited("updated", "CO-PO mapping")
async def update_mapping(
    mapping_id: int,
    updates: CoPOMappingUpdate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(FACULTY_ONLY)
):
    mapping = await get_or_404(db, repository.co_po_mappings, mapping_id, "Mapping")
    subject_id = await AttainmentService.subject_for_course_outcome(db, mapping.course_outcome_id)
    await AttainmentService.invalidate_subject(db, subject_id)
    return await repository.co_po_mappings.update(db, mapping, {"correlation_level": updates.correlation_level})

@mapping_router.delete("/{mapping_id}")
@audited("deleted", "CO-PO mapping")
async def delete_mapping(mapping_id: int, db: AsyncSession = Depends(get_db), _: User = Depends(FACULTY_ONLY)):
    mapping = await get_or_404(db, repository.co_po_mappings, mapping_id, "Mapping")
    subject_id = await AttainmentService.subject_for_course_outcome(db, mapping.course_outcome_id)
    await AttainmentService.invalidate_subject(db, subject_id)
    await repository.co_po_mappings.delete(db, mapping)
    return {"message": "Mapping deleted successfully"}
