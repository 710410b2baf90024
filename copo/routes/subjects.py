from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from copo.audit import audited
from copo.database import get_db
from copo.models.academics import Subject, SubjectAssignment, CourseOutcome, CoPOMapping, CoursePlan
from copo.models.assessment import DirectAssessment, StudentAssessmentMarks
from copo.models.user import Role, User
from copo.permissions import HOD_ONLY, parse_role
from copo.schemas.academic_schema import (
    SubjectCreate, SubjectUpdate, SubjectResponse,
    SubjectAssignmentCreate, SubjectAssignmentResponse,
)
from copo.security import get_current_user
from copo.services import repository
from copo.services.attainment import AttainmentService

router = APIRouter(prefix="/api/subjects", tags=["Subjects"])
assignment_router = APIRouter(prefix="/api/subject-assignments", tags=["Subject Assignments"])

async def get_subject_or_404(db: AsyncSession, subject_id: int) -> Subject:
    subject = await repository.subjects.get(db, subject_id)
    if not subject:
        raise HTTPException(status_code=404, detail="Subject not found")
    return subject

async def ensure_unique_code(db: AsyncSession, code: str, exclude_id: Optional[int] = None):
    where = [Subject.code == code]
    if exclude_id is not None:
        where.append(Subject.id != exclude_id)
    if await repository.subjects.first(db, *where):
        raise HTTPException(status_code=409, detail="Subject code already exists")

# --- Subjects ---

@router.get("", response_model=List[SubjectResponse])
async def list_subjects(db: AsyncSession = Depends(get_db)):
    return await repository.subjects.list(db)

@router.get("/department/{department_id}", response_model=List[SubjectResponse])
async def list_subjects_by_department(department_id: int, db: AsyncSession = Depends(get_db)):
    return await repository.subjects.list(db, Subject.department_id == department_id)

@router.get("/faculty/{faculty_id}", response_model=List[SubjectResponse])
async def list_subjects_by_faculty(faculty_id: int, db: AsyncSession = Depends(get_db)):
    assignments = await repository.subject_assignments.list(db, SubjectAssignment.faculty_id == faculty_id)
    subject_ids = sorted({a.subject_id for a in assignments})
    if not subject_ids:
        return []
    return await repository.subjects.list(db, Subject.id.in_(subject_ids))

@router.get("/{subject_id}", response_model=SubjectResponse)
async def get_subject(subject_id: int, db: AsyncSession = Depends(get_db)):
    return await get_subject_or_404(db, subject_id)

@router.post("", response_model=SubjectResponse, status_code=201)
@audited("created", "subject")
async def create_subject(subject_in: SubjectCreate, db: AsyncSession = Depends(get_db), _: User = Depends(HOD_ONLY)):
    await ensure_unique_code(db, subject_in.code)
    return await repository.subjects.create(db, subject_in.model_dump())

@router.patch("/{subject_id}", response_model=SubjectResponse)
@audited("updated", "subject")
async def update_subject(
    subject_id: int,
    updates: SubjectUpdate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(HOD_ONLY)
):
    subject = await get_subject_or_404(db, subject_id)
    data = updates.model_dump(exclude_unset=True, exclude_none=True)
    if "code" in data:
        await ensure_unique_code(db, data["code"], exclude_id=subject.id)
    if "department_id" in data or "academic_year" in data:
        # Indirect inputs are looked up by department and year
        await AttainmentService.invalidate_subject(db, subject.id)
    return await repository.subjects.update(db, subject, data)

@router.delete("/{subject_id}")
@audited("deleted", "subject")
async def delete_subject(subject_id: int, db: AsyncSession = Depends(get_db), _: User = Depends(HOD_ONLY)):
    subject = await get_subject_or_404(db, subject_id)
    await AttainmentService.invalidate_subject(db, subject.id)

    # Everything hanging off the subject goes in the same transaction
    outcomes = await repository.course_outcomes.list(db, CourseOutcome.subject_id == subject.id)
    if outcomes:
        await repository.co_po_mappings.delete_where(
            db, CoPOMapping.course_outcome_id.in_([co.id for co in outcomes]), commit=False
        )
    assessments = await repository.direct_assessments.list(db, DirectAssessment.subject_id == subject.id)
    if assessments:
        await repository.student_marks.delete_where(
            db, StudentAssessmentMarks.assessment_id.in_([a.id for a in assessments]), commit=False
        )
    await repository.direct_assessments.delete_where(db, DirectAssessment.subject_id == subject.id, commit=False)
    await repository.course_outcomes.delete_where(db, CourseOutcome.subject_id == subject.id, commit=False)
    await repository.course_plans.delete_where(db, CoursePlan.subject_id == subject.id, commit=False)
    await repository.subject_assignments.delete_where(db, SubjectAssignment.subject_id == subject.id, commit=False)
    await repository.subjects.delete(db, subject)
    return {"message": "Subject deleted successfully"}

# --- Subject assignments ---

@assignment_router.get("", response_model=List[SubjectAssignmentResponse])
async def list_assignments(db: AsyncSession = Depends(get_db), _: User = Depends(get_current_user)):
    return await repository.subject_assignments.list(db)

@assignment_router.get("/subject/{subject_id}", response_model=List[SubjectAssignmentResponse])
async def list_assignments_by_subject(subject_id: int, db: AsyncSession = Depends(get_db), _: User = Depends(HOD_ONLY)):
    return await repository.subject_assignments.list(db, SubjectAssignment.subject_id == subject_id)

@assignment_router.get("/faculty/{faculty_id}", response_model=List[SubjectAssignmentResponse])
async def list_assignments_by_faculty(faculty_id: int, db: AsyncSession = Depends(get_db), _: User = Depends(get_current_user)):
    return await repository.subject_assignments.list(db, SubjectAssignment.faculty_id == faculty_id)

@assignment_router.post("", response_model=SubjectAssignmentResponse, status_code=201)
@audited("created", "subject assignment")
async def create_assignment(
    assignment_in: SubjectAssignmentCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(HOD_ONLY)
):
    await get_subject_or_404(db, assignment_in.subject_id)

    faculty = await repository.users.get(db, assignment_in.faculty_id)
    if not faculty:
        raise HTTPException(status_code=404, detail="Faculty member not found")
    if parse_role(faculty.role) not in (Role.FACULTY, Role.HOD):
        raise HTTPException(status_code=400, detail="Subjects can only be assigned to faculty members or HODs")

    # Read-then-insert: two concurrent requests can still both pass this check
    duplicate = await repository.subject_assignments.first(
        db,
        SubjectAssignment.subject_id == assignment_in.subject_id,
        SubjectAssignment.faculty_id == assignment_in.faculty_id,
    )
    if duplicate:
        raise HTTPException(status_code=409, detail="Faculty is already assigned to this subject")

    return await repository.subject_assignments.create(db, {
        "subject_id": assignment_in.subject_id,
        "faculty_id": assignment_in.faculty_id,
        "assigned_by": current_user.id,
    })

@assignment_router.delete("/{assignment_id}", status_code=204)
@audited("deleted", "subject assignment")
async def delete_assignment(assignment_id: int, db: AsyncSession = Depends(get_db), _: User = Depends(HOD_ONLY)):
    deleted = await repository.subject_assignments.delete(db, assignment_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Assignment not found")
    return Response(status_code=204)
