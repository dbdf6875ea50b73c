from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CountersSchema(BaseModel):
    rx: int = Field(ge=0)
    tx: int = Field(ge=0)
    total: int = Field(ge=0)


class AppUsageSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    package_name: str = Field(alias="packageName")
    app_name: str = Field(alias="appName")
    icon: Optional[str] = None  # data:image/png;base64,...
    uid: int  # -1 for tethering
    wifi: CountersSchema
    mobile: CountersSchema
    total_bytes: int = Field(alias="totalBytes", gt=0)


class TotalUsageSchema(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    wifi: CountersSchema
    mobile: CountersSchema
    total_bytes: int = Field(alias="totalBytes", ge=0)


class PermissionStatusResponse(BaseModel):
    granted: bool


class SettingsScreenResponse(BaseModel):
    status: str


UsageReportResponse = List[AppUsageSchema]
