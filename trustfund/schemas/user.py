from pydantic import Field
from typing import Optional
from datetime import datetime

from trustfund.schemas.common import CamelModel


class UserResponse(CamelModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    profile_photo_url: Optional[str] = None
    is_ngo: bool
    is_admin: bool
    kyc_verified: bool
    created_at: datetime


class UpdateUserFlagsRequest(CamelModel):
    """Admin update of verification flags; omitted fields are left unchanged"""
    kyc_verified: Optional[bool] = Field(None)
    is_ngo: Optional[bool] = Field(None)
    is_admin: Optional[bool] = Field(None)
