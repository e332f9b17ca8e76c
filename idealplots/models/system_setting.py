# models/system_setting.py
from sqlalchemy import Boolean, Column, String, Text

from idealplots.db.base_class import Base
from idealplots.db.types import BigIntPK, enum_column
from idealplots.models.enums import SettingType


class SystemSetting(Base):
    __tablename__ = "system_settings"

    id = Column(BigIntPK, primary_key=True, autoincrement=True)
    setting_key = Column(String(255), unique=True, nullable=False)
    setting_value = Column(Text, nullable=True)
    setting_type = Column(enum_column(SettingType, "setting_type"), nullable=False, default=SettingType.STRING)
    description = Column(Text, nullable=True)
    is_public = Column(Boolean, nullable=False, default=False)
