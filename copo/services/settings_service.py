import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from copo.models.system import SystemSetting
from copo.schemas.system_schema import GeneralSettings
from copo.services import repository

logger = logging.getLogger(__name__)

LOGO_KEY = "logo_url"

COLLEGE_TITLE_KEYS = {
    "college_title": ("college_title", "College title shown in the header"),
    "institute_name": ("institute_name", "Full name of the institute"),
    "system_name": ("system_name", "Name of this COPO management system"),
}

# key -> (setting key, default, cast, description)
GENERAL_SETTINGS = {
    "academic_year": ("academic_year", "2024-2025", str, "Current academic year"),
    "direct_attainment_weight": ("direct_attainment_weight", 80, int, "Weight for direct assessment methods (in percentage)"),
    "indirect_attainment_weight": ("indirect_attainment_weight", 20, int, "Weight for indirect assessment methods (in percentage)"),
    "attainment_threshold": ("attainment_threshold", 60, int, "Minimum percentage required to consider an outcome as attained"),
    "attainment_type": ("attainment_type", "SEP", str, "Type of attainment calculation method (SEP or NEP)"),
}

class SettingsService:
    @staticmethod
    async def get(db: AsyncSession, key: str) -> Optional[SystemSetting]:
        return await repository.system_settings.first(db, SystemSetting.key == key)

    @staticmethod
    async def upsert(
        db: AsyncSession,
        key: str,
        value: str,
        user_id: int,
        description: Optional[str] = None,
        commit: bool = True,
    ) -> SystemSetting:
        setting = await SettingsService.get(db, key)
        if setting:
            data = {"value": value, "updated_by": user_id}
            return await repository.system_settings.update(db, setting, data, commit=commit)
        return await repository.system_settings.create(
            db,
            {"key": key, "value": value, "description": description, "updated_by": user_id},
            commit=commit,
        )

    @staticmethod
    async def get_general(db: AsyncSession) -> Dict[str, Any]:
        """General settings with defaults filled in for keys never saved."""
        values = {}
        for field, (key, default, cast, _) in GENERAL_SETTINGS.items():
            setting = await SettingsService.get(db, key)
            if setting is None:
                values[field] = default
                continue
            try:
                values[field] = cast(setting.value)
            except ValueError:
                values[field] = default

        try:
            GeneralSettings.model_validate(values)
        except ValidationError as e:
            logger.warning(f"Stored general settings are inconsistent, using defaults: {e.errors()}")
            return {field: default for field, (_, default, _, _) in GENERAL_SETTINGS.items()}
        return values

    @staticmethod
    async def save_general(db: AsyncSession, values: Dict[str, Any], user_id: int):
        # One transaction so a half-applied weight pair is never visible
        for field, (key, _, _, description) in GENERAL_SETTINGS.items():
            await SettingsService.upsert(db, key, str(values[field]), user_id, description, commit=False)
        await db.commit()

    @staticmethod
    async def get_college_title(db: AsyncSession) -> Dict[str, Optional[str]]:
        result = {}
        for field, (key, _) in COLLEGE_TITLE_KEYS.items():
            setting = await SettingsService.get(db, key)
            result[field] = setting.value if setting else None
        return result

    @staticmethod
    async def save_college_title(db: AsyncSession, values: Dict[str, str], user_id: int):
        for field, (key, description) in COLLEGE_TITLE_KEYS.items():
            await SettingsService.upsert(db, key, values[field], user_id, description, commit=False)
        await db.commit()

    @staticmethod
    def is_general_key(key: str) -> bool:
        return key in {setting_key for setting_key, _, _, _ in GENERAL_SETTINGS.values()}
