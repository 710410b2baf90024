from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from copo.audit import audited
from copo.database import get_db
from copo.models.assessment import (
    DirectAssessment, StudentAssessmentMarks, IndirectAssessment, StudentResponse,
)
from copo.models.user import Role, User
from copo.permissions import ADMIN_OR_HOD, FACULTY_ONLY, STAFF, STUDENT_ONLY, parse_role
from copo.schemas.assessment_schema import (
    DirectAssessmentCreate, DirectAssessmentResponse,
    StudentMarkCreate, StudentMarkUpdate, StudentMarkResponse,
    IndirectAssessmentCreate, IndirectAssessmentResponse,
    StudentResponseCreate, StudentResponseResponse,
)
from copo.security import get_current_user
from copo.services import repository
from copo.services.attainment import AttainmentService

direct_router = APIRouter(prefix="/api/direct-assessments", tags=["Direct Assessments"])
marks_router = APIRouter(prefix="/api/student-assessment-marks", tags=["Student Marks"])
indirect_router = APIRouter(prefix="/api/indirect-assessments", tags=["Indirect Assessments"])
responses_router = APIRouter(prefix="/api/student-responses", tags=["Student Responses"])

def ensure_own_records(current_user: User, student_id: int):
    if parse_role(current_user.role) is Role.STUDENT and current_user.id != student_id:
        raise HTTPException(status_code=403, detail="Students can only view their own records")

def check_marks(marks_obtained: int, assessment: DirectAssessment):
    if marks_obtained > assessment.max_marks:
        raise HTTPException(
            status_code=400,
            detail=f"Marks obtained must be between 0 and {assessment.max_marks}"
        )

# --- Direct assessments ---

@direct_router.get("/subject/{subject_id}", response_model=List[DirectAssessmentResponse])
async def list_direct_assessments(subject_id: int, db: AsyncSession = Depends(get_db)):
    return await repository.direct_assessments.list(db, DirectAssessment.subject_id == subject_id)

@direct_router.post("", response_model=DirectAssessmentResponse, status_code=201)
@audited("created", "direct assessment")
async def create_direct_assessment(
    assessment_in: DirectAssessmentCreate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(FACULTY_ONLY)
):
    subject = await repository.subjects.get(db, assessment_in.subject_id)
    if not subject:
        raise HTTPException(status_code=404, detail="Subject not found")
    assessment = await repository.direct_assessments.create(db, assessment_in.model_dump(), commit=False)
    await AttainmentService.invalidate_subject(db, subject.id)
    await db.commit()
    await db.refresh(assessment)
    return assessment

# --- Student marks ---

@marks_router.get("/assessment/{assessment_id}", response_model=List[StudentMarkResponse])
async def list_marks_by_assessment(assessment_id: int, db: AsyncSession = Depends(get_db), _: User = Depends(STAFF)):
    return await repository.student_marks.list(db, StudentAssessmentMarks.assessment_id == assessment_id)

@marks_router.get("/student/{student_id}", response_model=List[StudentMarkResponse])
async def list_marks_by_student(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    ensure_own_records(current_user, student_id)
    return await repository.student_marks.list(db, StudentAssessmentMarks.student_id == student_id)

@marks_router.post("", response_model=StudentMarkResponse, status_code=201)
@audited("created", "student assessment mark")
async def create_mark(
    mark_in: StudentMarkCreate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(FACULTY_ONLY)
):
    assessment = await repository.direct_assessments.get(db, mark_in.assessment_id)
    if not assessment:
        raise HTTPException(status_code=404, detail="Assessment not found")
    check_marks(mark_in.marks_obtained, assessment)

    course_outcome = await repository.course_outcomes.get(db, mark_in.course_outcome_id)
    if not course_outcome:
        raise HTTPException(status_code=404, detail="Course outcome not found")
    if course_outcome.subject_id != assessment.subject_id:
        raise HTTPException(status_code=400, detail="Course outcome does not belong to the assessed subject")

    mark = await repository.student_marks.create(db, mark_in.model_dump(), commit=False)
    await AttainmentService.invalidate_subject(db, assessment.subject_id)
    await db.commit()
    await db.refresh(mark)
    return mark

@marks_router.patch("/{mark_id}", response_model=StudentMarkResponse)
@audited("updated", "student assessment mark")
async def update_mark(
    mark_id: int,
    updates: StudentMarkUpdate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(FACULTY_ONLY)
):
    mark = await repository.student_marks.get(db, mark_id)
    if not mark:
        raise HTTPException(status_code=404, detail="Marks record not found")

    assessment = await repository.direct_assessments.get(db, mark.assessment_id)
    if assessment:
        check_marks(updates.marks_obtained, assessment)
        await AttainmentService.invalidate_subject(db, assessment.subject_id)

    return await repository.student_marks.update(db, mark, {"marks_obtained": updates.marks_obtained})

# --- Indirect assessments ---

@indirect_router.get("/department/{department_id}", response_model=List[IndirectAssessmentResponse])
async def list_indirect_assessments(department_id: int, db: AsyncSession = Depends(get_db), _: User = Depends(STAFF)):
    return await repository.indirect_assessments.list(db, IndirectAssessment.department_id == department_id)

@indirect_router.post("", response_model=IndirectAssessmentResponse, status_code=201)
@audited("created", "indirect assessment")
async def create_indirect_assessment(
    assessment_in: IndirectAssessmentCreate,
    db: AsyncSession = Depends(get_db),
    _: User = Depends(ADMIN_OR_HOD)
):
    department = await repository.departments.get(db, assessment_in.department_id)
    if not department:
        raise HTTPException(status_code=404, detail="Department not found")
    return await repository.indirect_assessments.create(db, assessment_in.model_dump())

# --- Student responses ---

@responses_router.get("/assessment/{assessment_id}", response_model=List[StudentResponseResponse])
async def list_responses_by_assessment(assessment_id: int, db: AsyncSession = Depends(get_db), _: User = Depends(ADMIN_OR_HOD)):
    return await repository.student_responses.list(db, StudentResponse.assessment_id == assessment_id)

@responses_router.get("/student/{student_id}", response_model=List[StudentResponseResponse])
async def list_responses_by_student(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    ensure_own_records(current_user, student_id)
    return await repository.student_responses.list(db, StudentResponse.student_id == student_id)

@responses_router.post("", response_model=StudentResponseResponse, status_code=201)
@audited("created", "student response")
async def create_response(
    response_in: StudentResponseCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(STUDENT_ONLY)
):
    assessment = await repository.indirect_assessments.get(db, response_in.assessment_id)
    if not assessment:
        raise HTTPException(status_code=404, detail="Assessment not found")

    duplicate = await repository.student_responses.first(
        db,
        StudentResponse.assessment_id == assessment.id,
        StudentResponse.student_id == current_user.id,
    )
    if duplicate:
        raise HTTPException(status_code=409, detail="You have already responded to this assessment")

    response = await repository.student_responses.create(db, {
        "assessment_id": assessment.id,
        "student_id": current_user.id,
        "responses": response_in.responses,
    }, commit=False)
    await AttainmentService.invalidate_department(db, assessment.department_id)
    await db.commit()
    await db.refresh(response)
    return response
