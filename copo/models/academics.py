from sqlalchemy import Column, Integer, String, Text, DateTime, JSON
import enum
from copo.database import Base
from copo.utils.time_utils import get_local_time

class SubjectStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETE = "complete"

class Department(Base):
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    # At most one department per HOD, checked by the routes only
    hod_id = Column(Integer, nullable=True, index=True)

class Subject(Base):
    __tablename__ = "subjects"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String, unique=True, index=True, nullable=False) # e.g. CS301
    name = Column(String, nullable=False)
    department_id = Column(Integer, nullable=False, index=True)
    semester = Column(Integer, nullable=False)
    academic_year = Column(String, nullable=False) # e.g. 2024-2025
    status = Column(String, default=SubjectStatus.PENDING.value, nullable=False)

class SubjectAssignment(Base):
    __tablename__ = "subject_assignments"

    # No unique constraint on (subject_id, faculty_id): duplicates are rejected by a pre-insert check
    id = Column(Integer, primary_key=True, index=True)
    subject_id = Column(Integer, nullable=False, index=True)
    faculty_id = Column(Integer, nullable=False, index=True)
    assigned_by = Column(Integer, nullable=False)
    assigned_at = Column(DateTime, default=get_local_time, nullable=False)

class CourseOutcome(Base):
    __tablename__ = "course_outcomes"

    id = Column(Integer, primary_key=True, index=True)
    subject_id = Column(Integer, nullable=False, index=True)
    outcome_number = Column(Integer, nullable=False)
    description = Column(Text, nullable=False)

class ProgramOutcome(Base):
    __tablename__ = "program_outcomes"

    id = Column(Integer, primary_key=True, index=True)
    department_id = Column(Integer, nullable=False, index=True)
    outcome_number = Column(Integer, nullable=False)
    description = Column(Text, nullable=False)

class CoPOMapping(Base):
    __tablename__ = "co_po_mappings"

    id = Column(Integer, primary_key=True, index=True)
    course_outcome_id = Column(Integer, nullable=False, index=True)
    program_outcome_id = Column(Integer, nullable=False, index=True)
    correlation_level = Column(Integer, nullable=False) # 1=Low, 2=Medium, 3=High

class CoursePlan(Base):
    __tablename__ = "course_plans"

    id = Column(Integer, primary_key=True, index=True)
    subject_id = Column(Integer, nullable=False, index=True)
    faculty_id = Column(Integer, nullable=False, index=True) # Owner, the only one allowed to update
    content = Column(JSON, nullable=False)
    status = Column(String, default="draft", nullable=False)
    last_updated = Column(DateTime, default=get_local_time, onupdate=get_local_time, nullable=False)
