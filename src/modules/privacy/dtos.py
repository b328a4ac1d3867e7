"""Privacy DTOs (pydantic v2, frozen)."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr

from modules.privacy.constants import DataRetention, RequestStatus, RequestType


class DataRightsRequestDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    email: EmailStr
    request_type: RequestType
    description: str = ""


class UpdateDataRequestDTO(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    status: RequestStatus
    admin_response: Optional[str] = None


class DataRequestQueryDTO(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Optional[RequestStatus] = None
    request_type: Optional[RequestType] = None


class PrivacySettingsDTO(BaseModel):
    """Partial update; omitted preferences keep their value."""

    model_config = ConfigDict(frozen=True)

    marketing_emails: Optional[bool] = None
    analytics_tracking: Optional[bool] = None
    third_party_sharing: Optional[bool] = None
    data_retention: Optional[DataRetention] = None
