from pydantic import Field, ConfigDict
from typing import Optional
from datetime import datetime

from trustfund.models.base import MAX_AMOUNT
from trustfund.schemas.common import CamelModel


class CreateDonationRequest(CamelModel):
    """Schema for recording a donation.

    Positivity of ``amount`` is enforced by the ledger so that it is
    reported as an invalid amount rather than a schema error.
    """
    campaign_id: int = Field(..., description="ID of the campaign to donate to")
    amount: int = Field(..., le=MAX_AMOUNT, description="Principal in whole rupees")
    tip_amount: int = Field(default=0, le=MAX_AMOUNT, description="Optional platform tip in whole rupees")
    donor_name: Optional[str] = Field(None, max_length=255, description="Display name, omit to stay anonymous")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "campaignId": 5,
                "amount": 2500,
                "tipAmount": 250,
                "donorName": "Asha"
            }
        }
    )


class DonationResponse(CamelModel):
    """Schema for donation responses"""
    id: int
    campaign_id: int
    donor_id: Optional[str] = None
    donor_name: Optional[str] = None
    amount: int
    tip_amount: int
    released: bool
    created_at: datetime


class DonationListResponse(CamelModel):
    """Schema for donation list response"""
    donations: list[DonationResponse]
    total: int
