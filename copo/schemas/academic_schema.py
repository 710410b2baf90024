from pydantic import Field
from datetime import datetime
from typing import List, Optional

from copo.models.academics import SubjectStatus
from copo.schemas.base import CamelModel

# --- Departments ---
class DepartmentCreate(CamelModel):
    name: str = Field(..., min_length=1)
    hod_id: Optional[int] = None

class DepartmentUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1)
    hod_id: Optional[int] = None

class DepartmentResponse(CamelModel):
    id: int
    name: str
    hod_id: Optional[int] = None

# --- Subjects ---
class SubjectCreate(CamelModel):
    code: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    department_id: int
    semester: int = Field(..., ge=1)
    academic_year: str = Field(..., min_length=1)
    status: SubjectStatus = SubjectStatus.PENDING

class SubjectUpdate(CamelModel):
    code: Optional[str] = Field(None, min_length=1)
    name: Optional[str] = Field(None, min_length=1)
    department_id: Optional[int] = None
    semester: Optional[int] = Field(None, ge=1)
    academic_year: Optional[str] = None
    status: Optional[SubjectStatus] = None

class SubjectResponse(CamelModel):
    id: int
    code: str
    name: str
    department_id: int
    semester: int
    academic_year: str
    status: str

# --- Subject assignments ---
class SubjectAssignmentCreate(CamelModel):
    subject_id: int
    faculty_id: int

class SubjectAssignmentResponse(CamelModel):
    id: int
    subject_id: int
    faculty_id: int
    assigned_by: int
    assigned_at: datetime

# --- Course / program outcomes ---
class CourseOutcomeCreate(CamelModel):
    subject_id: int
    outcome_number: int = Field(..., ge=1)
    description: str = Field(..., min_length=1)

class CourseOutcomeUpdate(CamelModel):
    outcome_number: Optional[int] = Field(None, ge=1)
    description: Optional[str] = Field(None, min_length=1)

class CourseOutcomeResponse(CamelModel):
    id: int
    subject_id: int
    outcome_number: int
    description: str

class ProgramOutcomeCreate(CamelModel):
    department_id: int
    outcome_number: int = Field(..., ge=1)
    description: str = Field(..., min_length=1)

class ProgramOutcomeUpdate(CamelModel):
    outcome_number: Optional[int] = Field(None, ge=1)
    description: Optional[str] = Field(None, min_length=1)

class ProgramOutcomeResponse(CamelModel):
    id: int
    department_id: int
    outcome_number: int
    description: str

# --- CO-PO mapping ---
class CoPOMappingCreate(CamelModel):
    course_outcome_id: int
    program_outcome_id: int
    correlation_level: int = Field(..., ge=1, le=3) # 1=Low, 2=Medium, 3=High

class CoPOMappingUpdate(CamelModel):
    correlation_level: int = Field(..., ge=1, le=3)

class CoPOMappingResponse(CamelModel):
    id: int
    course_outcome_id: int
    program_outcome_id: int
    correlation_level: int

# --- Course plans ---
class CourseModule(CamelModel):
    title: str
    topics: List[str] = Field(default=[])
    duration: int = Field(0, ge=0) # Hours

class AssessmentMethod(CamelModel):
    type: str
    weightage: float = Field(0, ge=0, le=100)
    description: str = ""

class CoursePlanContent(CamelModel):
    overview: str = ""
    objectives: List[str] = Field(default=[])
    modules: List[CourseModule] = Field(default=[])
    assessment_methods: List[AssessmentMethod] = Field(default=[])
    references: List[str] = Field(default=[])

class CoursePlanCreate(CamelModel):
    subject_id: int
    content: CoursePlanContent
    status: str = "draft"

class CoursePlanUpdate(CamelModel):
    # facultyId and lastUpdated are server controlled and not accepted here
    content: Optional[CoursePlanContent] = None
    status: Optional[str] = None

class CoursePlanResponse(CamelModel):
    id: int
    subject_id: int
    faculty_id: int
    content: dict
    status: str
    last_updated: datetime
