from pydantic import Field, EmailStr, ConfigDict
from datetime import datetime
from enum import Enum
from typing import Optional

from trustfund.models.base import MAX_AMOUNT
from trustfund.models.campaign import Cause
from trustfund.schemas.common import CamelModel


class CampaignSort(str, Enum):
    """Listing order"""
    NEWEST = "newest"
    FUNDED = "funded"
    VERIFIED = "verified"


class CreateCampaignRequest(CamelModel):
    """Request schema for creating a campaign"""
    title: str = Field(..., max_length=200, description="Campaign title, must not be blank")
    description: str = Field(..., description="Campaign description, must not be blank")
    cause: Cause = Field(..., description="One of Medical, Education, Disaster Relief, Community")
    goal_amount: int = Field(..., le=MAX_AMOUNT, description="Goal in whole rupees, must be greater than 0")
    location: Optional[str] = Field(None, max_length=200, description="City or region")
    image_url: Optional[str] = Field(None, description="Public URL returned by object storage")
    hospital_email: Optional[EmailStr] = Field(None, description="Hospital contact, Medical campaigns only")
    is_temporary: bool = Field(default=False, description="Accept donations before verification (Medical only)")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "title": "Clean Water",
                "description": "Borewells for three villages",
                "cause": "Community",
                "goalAmount": 10000,
                "location": "Pune",
            }
        }
    )


class SetCampaignVerifiedRequest(CamelModel):
    """Admin request to flip the verified flag"""
    verified: bool


class CampaignResponse(CamelModel):
    """Response schema for campaign data"""
    id: int
    title: str
    description: str
    image_url: Optional[str] = None
    location: Optional[str] = None
    cause: Cause
    goal_amount: int
    collected_amount: int
    unique_code: str
    verified: bool
    is_temporary: bool
    hospital_email: Optional[str] = None
    created_by: str
    created_at: datetime


class CampaignListResponse(CamelModel):
    """Response schema for list of campaigns"""
    campaigns: list[CampaignResponse]
    total: int


class ReleaseFundsResponse(CamelModel):
    """Result of releasing held donations"""
    campaign_id: int
    released_count: int
