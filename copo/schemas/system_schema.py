from pydantic import Field, model_validator
from datetime import datetime
from typing import Literal, Optional

from copo.schemas.base import CamelModel

class ActivityLogResponse(CamelModel):
    id: int
    user_id: int
    action: str
    entity_type: str
    entity_id: Optional[int] = None
    details: Optional[str] = None
    created_at: datetime

class NotificationCreate(CamelModel):
    user_id: int
    title: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    type: Literal["info", "success", "warning", "error"] = "info"
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None

class NotificationResponse(CamelModel):
    id: int
    user_id: int
    title: str
    message: str
    type: str
    is_read: bool
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None
    created_at: datetime

class SystemSettingCreate(CamelModel):
    key: str = Field(..., min_length=1)
    value: str
    description: Optional[str] = None

class SystemSettingUpdate(CamelModel):
    value: Optional[str] = None
    description: Optional[str] = None

class SystemSettingResponse(CamelModel):
    id: int
    key: str
    value: str
    description: Optional[str] = None
    updated_by: int
    updated_at: datetime

class LogoUpdate(CamelModel):
    url: str = Field(..., min_length=1)

class CollegeTitle(CamelModel):
    college_title: str = Field(..., min_length=1)
    institute_name: str = Field(..., min_length=1)
    system_name: str = Field(..., min_length=1)

class GeneralSettings(CamelModel):
    academic_year: str = Field(..., min_length=1)
    direct_attainment_weight: int = Field(..., ge=0, le=100)
    indirect_attainment_weight: int = Field(..., ge=0, le=100)
    attainment_threshold: int = Field(..., ge=0, le=100)
    attainment_type: Literal["SEP", "NEP"]

    @model_validator(mode="after")
    def check_weights(self):
        if self.direct_attainment_weight + self.indirect_attainment_weight != 100:
            raise ValueError("Direct and indirect attainment weights must add up to 100")
        return self
