from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Optional
import structlog

from trustfund.api.deps import get_context, get_current_actor, get_optional_actor
from trustfund.context import AppContext
from trustfund.database.database import get_db
from trustfund.models.user import User
from trustfund.schemas.common import MessageResponse
from trustfund.schemas.donation import CreateDonationRequest, DonationListResponse, DonationResponse

router = APIRouter(prefix="/donations", tags=["donations"])
logger = structlog.get_logger(__name__)


@router.post(
    "",
    response_model=DonationResponse,
    status_code=201,
    responses={400: {"model": MessageResponse}, 404: {"model": MessageResponse}},
)
async def create_donation(
    donation_data: CreateDonationRequest,
    donor: Optional[User] = Depends(get_optional_actor),
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
):
    """
    Record a donation
    Flow:
    1. Validate principal and tip
    2. Decide release state from the campaign's current verification
    3. Append the donation and add the principal to the campaign in one transaction
    """
    logger.info(
        "Recording donation",
        campaign_id=donation_data.campaign_id,
        amount=donation_data.amount,
        tip_amount=donation_data.tip_amount,
        donor_id=donor.id if donor else None,
    )
    return await context.donations.record_donation(
        db=db,
        campaign_id=donation_data.campaign_id,
        amount=donation_data.amount,
        tip_amount=donation_data.tip_amount,
        donor=donor,
        donor_name=donation_data.donor_name,
    )


@router.get("/my", response_model=DonationListResponse)
async def list_my_donations(
    skip: int = Query(0, ge=0, description="Number of donations to skip"),
    limit: int = Query(100, ge=1, le=100, description="Number of donations to return"),
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
):
    """Donations made by the caller"""
    donations = await context.donations.list_for_donor(db=db, donor_id=actor.id, skip=skip, limit=limit)
    return DonationListResponse(donations=donations, total=len(donations))
