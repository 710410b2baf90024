from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List
import logging

from copo.audit import audited
from copo.database import get_db
from copo.models.academics import CoursePlan
from copo.models.user import User
from copo.permissions import FACULTY_ONLY
from copo.schemas.academic_schema import CoursePlanCreate, CoursePlanUpdate, CoursePlanResponse
from copo.services import repository
from copo.utils.time_utils import get_local_time

router = APIRouter(prefix="/api/course-plans", tags=["Course Plans"])
logger = logging.getLogger(__name__)

@router.get("/subject/{subject_id}", response_model=CoursePlanResponse)
async def get_course_plan_by_subject(subject_id: int, db: AsyncSession = Depends(get_db)):
    plan = await repository.course_plans.first(db, CoursePlan.subject_id == subject_id)
    if not plan:
        raise HTTPException(status_code=404, detail="Course plan not found")
    return plan

@router.get("/faculty/{faculty_id}", response_model=List[CoursePlanResponse])
async def list_course_plans_by_faculty(faculty_id: int, db: AsyncSession = Depends(get_db)):
    return await repository.course_plans.list(db, CoursePlan.faculty_id == faculty_id)

@router.get("/{plan_id}", response_model=CoursePlanResponse)
async def get_course_plan(plan_id: int, db: AsyncSession = Depends(get_db)):
    plan = await repository.course_plans.get(db, plan_id)
    if not plan:
        raise HTTPException(status_code=404, detail="Course plan not found")
    return plan

@router.post("", response_model=CoursePlanResponse, status_code=201)
@audited("created", "course plan")
async def create_course_plan(
    plan_in: CoursePlanCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(FACULTY_ONLY)
):
    subject = await repository.subjects.get(db, plan_in.subject_id)
    if not subject:
        raise HTTPException(status_code=404, detail="Subject not found")

    existing = await repository.course_plans.first(db, CoursePlan.subject_id == subject.id)
    if existing:
        raise HTTPException(status_code=409, detail="A course plan already exists for this subject")

    return await repository.course_plans.create(db, {
        "subject_id": subject.id,
        "faculty_id": current_user.id,
        "content": plan_in.content.model_dump(by_alias=True),
        "status": plan_in.status,
    })

@router.patch("/{plan_id}", response_model=CoursePlanResponse)
@audited("updated", "course plan")
async def update_course_plan(
    plan_id: int,
    updates: CoursePlanUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(FACULTY_ONLY)
):
    plan = await repository.course_plans.get(db, plan_id)
    if not plan:
        raise HTTPException(status_code=404, detail="Course plan not found")

    if plan.faculty_id != current_user.id:
        logger.info(f"User {current_user.id} tried to update course plan {plan.id} owned by {plan.faculty_id}")
        raise HTTPException(status_code=403, detail="You can only update your own course plans")

    data = {"last_updated": get_local_time()}
    if updates.content is not None:
        data["content"] = updates.content.model_dump(by_alias=True)
    if updates.status is not None:
        data["status"] = updates.status

    return await repository.course_plans.update(db, plan, data)
