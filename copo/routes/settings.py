from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from copo.audit import audited
from copo.database import get_db
from copo.models.system import SystemSetting
from copo.models.user import User
from copo.permissions import ADMIN_ONLY
from copo.schemas.system_schema import (
    SystemSettingCreate, SystemSettingUpdate, SystemSettingResponse,
    LogoUpdate, CollegeTitle, GeneralSettings,
)
from copo.services import repository
from copo.services.settings_service import SettingsService, LOGO_KEY

router = APIRouter(prefix="/api/settings", tags=["Settings"])

def ensure_not_general(key: str):
    # Weights are only consistent when written together
    if SettingsService.is_general_key(key):
        raise HTTPException(status_code=400, detail="Use /api/settings/general to change attainment settings")

@router.get("", response_model=List[SystemSettingResponse])
async def list_settings(db: AsyncSession = Depends(get_db)):
    return await repository.system_settings.list(db, order_by=SystemSetting.key)

@router.post("", response_model=SystemSettingResponse, status_code=201)
@audited("created", "system-setting")
async def create_setting(
    setting_in: SystemSettingCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(ADMIN_ONLY)
):
    ensure_not_general(setting_in.key)
    if await SettingsService.get(db, setting_in.key):
        raise HTTPException(status_code=409, detail="Setting key already exists")
    return await repository.system_settings.create(db, {
        **setting_in.model_dump(),
        "updated_by": current_user.id,
    })

# Named settings are registered before /{setting_id} so they are not taken for an id

@router.get("/logo")
async def get_logo(db: AsyncSession = Depends(get_db)):
    setting = await SettingsService.get(db, LOGO_KEY)
    return {"logoUrl": setting.value if setting else None}

@router.post("/logo")
@audited("updated", "system-setting")
async def update_logo(
    logo: LogoUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(ADMIN_ONLY)
):
    setting = await SettingsService.upsert(db, LOGO_KEY, logo.url, current_user.id, "URL of the college logo")
    return {"id": setting.id, "logoUrl": setting.value}

@router.get("/college-title")
async def get_college_title(db: AsyncSession = Depends(get_db)):
    values = await SettingsService.get_college_title(db)
    return {
        "collegeTitle": values["college_title"] or "",
        "instituteName": values["institute_name"] or "",
        "systemName": values["system_name"] or "",
    }

@router.post("/college-title", response_model=CollegeTitle)
@audited("updated", "system-setting")
async def update_college_title(
    title: CollegeTitle,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(ADMIN_ONLY)
):
    await SettingsService.save_college_title(db, title.model_dump(), current_user.id)
    return title

@router.get("/general", response_model=GeneralSettings)
async def get_general_settings(db: AsyncSession = Depends(get_db)):
    return await SettingsService.get_general(db)

@router.post("/general", response_model=GeneralSettings)
@audited("updated", "system-setting")
async def update_general_settings(
    settings_in: GeneralSettings,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(ADMIN_ONLY)
):
    # Weights and threshold are already validated by the schema, nothing is written on failure
    await SettingsService.save_general(db, settings_in.model_dump(), current_user.id)
    return settings_in

@router.patch("/{setting_id}", response_model=SystemSettingResponse)
@audited("updated", "system-setting")
async def update_setting(
    setting_id: int,
    updates: SystemSettingUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(ADMIN_ONLY)
):
    setting = await repository.system_settings.get(db, setting_id)
    if not setting:
        raise HTTPException(status_code=404, detail="Setting not found")
    ensure_not_general(setting.key)
    data = updates.model_dump(exclude_unset=True, exclude_none=True)
    data["updated_by"] = current_user.id
    return await repository.system_settings.update(db, setting, data)
