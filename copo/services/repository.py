from typing import Any, Dict, Generic, List, Optional, Type, TypeVar, Union

from sqlalchemy import delete as sa_delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from copo.database import Base
from copo.models.user import User, PasswordResetOtp
from copo.models.academics import (
    Department, Subject, SubjectAssignment, CourseOutcome,
    ProgramOutcome, CoPOMapping, CoursePlan,
)
from copo.models.assessment import (
    DirectAssessment, StudentAssessmentMarks, IndirectAssessment,
    StudentResponse, Attainment,
)
from copo.models.system import ActivityLog, Notification, SystemSetting

ModelT = TypeVar("ModelT", bound=Base)

class Repository(Generic[ModelT]):
    """
    Create/read/update/delete facade over one mapped table.

    Writes commit by default. Pass ``commit=False`` to only flush, so several
    writes can be committed together by the caller.
    """

    def __init__(self, model: Type[ModelT]):
        self.model = model

    async def get(self, db: AsyncSession, obj_id: int) -> Optional[ModelT]:
        return await db.get(self.model, obj_id)

    async def first(self, db: AsyncSession, *where) -> Optional[ModelT]:
        result = await db.execute(select(self.model).where(*where).limit(1))
        return result.scalars().first()

    async def list(self, db: AsyncSession, *where, order_by=None, limit: Optional[int] = None) -> List[ModelT]:
        stmt = select(self.model).where(*where)
        stmt = stmt.order_by(order_by if order_by is not None else self.model.id)
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def count(self, db: AsyncSession, *where) -> int:
        result = await db.execute(select(func.count(self.model.id)).where(*where))
        return result.scalar() or 0

    async def create(self, db: AsyncSession, data: Dict[str, Any], commit: bool = True) -> ModelT:
        obj = self.model(**data)
        db.add(obj)
        await self._save(db, obj, commit)
        return obj

    async def update(self, db: AsyncSession, obj: Union[ModelT, int], data: Dict[str, Any], commit: bool = True) -> Optional[ModelT]:
        if isinstance(obj, int):
            obj = await self.get(db, obj)
            if obj is None:
                return None
        for field, value in data.items():
            setattr(obj, field, value)
        await self._save(db, obj, commit)
        return obj

    async def delete(self, db: AsyncSession, obj: Union[ModelT, int], commit: bool = True) -> bool:
        if isinstance(obj, int):
            obj = await self.get(db, obj)
            if obj is None:
                return False
        await db.delete(obj)
        if commit:
            await db.commit()
        else:
            await db.flush()
        return True

    async def delete_where(self, db: AsyncSession, *where, commit: bool = True) -> None:
        await db.execute(sa_delete(self.model).where(*where))
        if commit:
            await db.commit()

    async def _save(self, db: AsyncSession, obj: ModelT, commit: bool):
        if commit:
            await db.commit()
            await db.refresh(obj)
        else:
            await db.flush()

users = Repository(User)
password_reset_otps = Repository(PasswordResetOtp)
departments = Repository(Department)
subjects = Repository(Subject)
subject_assignments = Repository(SubjectAssignment)
course_outcomes = Repository(CourseOutcome)
program_outcomes = Repository(ProgramOutcome)
co_po_mappings = Repository(CoPOMapping)
course_plans = Repository(CoursePlan)
direct_assessments = Repository(DirectAssessment)
student_marks = Repository(StudentAssessmentMarks)
indirect_assessments = Repository(IndirectAssessment)
student_responses = Repository(StudentResponse)
attainments = Repository(Attainment)
activity_logs = Repository(ActivityLog)
notifications = Repository(Notification)
system_settings = Repository(SystemSetting)
