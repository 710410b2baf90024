from pydantic import Field
from datetime import datetime
from typing import Any, Dict, Optional

from copo.models.assessment import AttainmentType
from copo.schemas.base import CamelModel

class DirectAssessmentCreate(CamelModel):
    subject_id: int
    assessment_type: str = Field(..., min_length=1)
    max_marks: int = Field(..., gt=0)

class DirectAssessmentResponse(CamelModel):
    id: int
    subject_id: int
    assessment_type: str
    max_marks: int
    created_at: datetime

class StudentMarkCreate(CamelModel):
    assessment_id: int
    student_id: int
    course_outcome_id: int
    marks_obtained: int = Field(..., ge=0)

class StudentMarkUpdate(CamelModel):
    marks_obtained: int = Field(..., ge=0)

class StudentMarkResponse(CamelModel):
    id: int
    assessment_id: int
    student_id: int
    course_outcome_id: int
    marks_obtained: int

class IndirectAssessmentCreate(CamelModel):
    department_id: int
    assessment_type: str = Field(..., min_length=1)
    academic_year: str = Field(..., min_length=1)

class IndirectAssessmentResponse(CamelModel):
    id: int
    department_id: int
    assessment_type: str
    academic_year: str
    created_at: datetime

class StudentResponseCreate(CamelModel):
    assessment_id: int
    responses: Dict[str, Any]

class StudentResponseResponse(CamelModel):
    id: int
    assessment_id: int
    student_id: int
    responses: Dict[str, Any]
    submitted_at: datetime

class AttainmentCreate(CamelModel):
    subject_id: Optional[int] = None
    department_id: Optional[int] = None
    academic_year: str = Field(..., min_length=1)
    attainment_type: AttainmentType
    attainment_data: Dict[str, Any]

class AttainmentResponse(CamelModel):
    id: int
    subject_id: Optional[int] = None
    department_id: Optional[int] = None
    academic_year: str
    attainment_type: str
    attainment_data: Dict[str, Any]
    calculated_at: datetime
