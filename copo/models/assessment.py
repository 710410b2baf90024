from sqlalchemy import Column, Integer, String, DateTime, JSON
import enum
from copo.database import Base
from copo.utils.time_utils import get_local_time

class AttainmentType(str, enum.Enum):
    CO = "co"
    PO = "po"

class DirectAssessment(Base):
    __tablename__ = "direct_assessments"

    id = Column(Integer, primary_key=True, index=True)
    subject_id = Column(Integer, nullable=False, index=True)
    assessment_type = Column(String, nullable=False) # internal, preparatory
    max_marks = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=get_local_time, nullable=False)

class StudentAssessmentMarks(Base):
    __tablename__ = "student_assessment_marks"

    id = Column(Integer, primary_key=True, index=True)
    assessment_id = Column(Integer, nullable=False, index=True)
    student_id = Column(Integer, nullable=False, index=True)
    course_outcome_id = Column(Integer, nullable=False, index=True)
    marks_obtained = Column(Integer, nullable=False)

class IndirectAssessment(Base):
    __tablename__ = "indirect_assessments"

    id = Column(Integer, primary_key=True, index=True)
    department_id = Column(Integer, nullable=False, index=True)
    assessment_type = Column(String, nullable=False) # course_exit, program_exit, alumni
    academic_year = Column(String, nullable=False)
    created_at = Column(DateTime, default=get_local_time, nullable=False)

class StudentResponse(Base):
    __tablename__ = "student_responses"

    id = Column(Integer, primary_key=True, index=True)
    assessment_id = Column(Integer, nullable=False, index=True)
    student_id = Column(Integer, nullable=False, index=True)
    responses = Column(JSON, nullable=False) # {"ratings": {"<courseOutcomeId>": 4}, "scale": 5}
    submitted_at = Column(DateTime, default=get_local_time, nullable=False)

class Attainment(Base):
    __tablename__ = "attainments"

    # Snapshot of a computed report, dropped whenever its inputs change
    id = Column(Integer, primary_key=True, index=True)
    subject_id = Column(Integer, nullable=True, index=True)
    department_id = Column(Integer, nullable=True, index=True)
    academic_year = Column(String, nullable=False)
    attainment_type = Column(String, nullable=False)
    attainment_data = Column(JSON, nullable=False)
    calculated_at = Column(DateTime, default=get_local_time, nullable=False)
