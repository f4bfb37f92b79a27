from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.orm import Session
from typing import Optional
import structlog

from trustfund.api.deps import get_context, get_current_actor
from trustfund.context import AppContext
from trustfund.database.database import get_db
from trustfund.models.campaign import Cause
from trustfund.models.user import User
from trustfund.schemas.campaign import (
    CampaignListResponse,
    CampaignResponse,
    CampaignSort,
    CreateCampaignRequest,
)
from trustfund.schemas.common import MessageResponse
from trustfund.schemas.donation import DonationListResponse

router = APIRouter(prefix="/campaigns", tags=["campaigns"])
logger = structlog.get_logger(__name__)


@router.post(
    "",
    response_model=CampaignResponse,
    status_code=201,
    responses={400: {"model": MessageResponse}, 401: {"model": MessageResponse}, 403: {"model": MessageResponse}},
)
async def create_campaign(
    campaign_data: CreateCampaignRequest,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
):
    """Create a new campaign as the authenticated actor"""
    return await context.campaigns.create_campaign(db=db, campaign_data=campaign_data, actor=actor)


@router.get("", response_model=CampaignListResponse)
async def list_campaigns(
    cause: Optional[Cause] = Query(None, description="Filter by cause"),
    location: Optional[str] = Query(None, description="Filter by exact location"),
    verified_only: bool = Query(False, alias="verifiedOnly", description="Only verified campaigns"),
    sort: CampaignSort = Query(CampaignSort.NEWEST, description="newest, funded or verified"),
    q: Optional[str] = Query(None, max_length=100, description="Search title or code"),
    skip: int = Query(0, ge=0, description="Number of campaigns to skip"),
    limit: int = Query(100, ge=1, le=100, description="Number of campaigns to return"),
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
):
    """List campaigns with filters and sorting"""
    campaigns, total = await context.campaigns.list_campaigns(
        db=db,
        cause=cause,
        location=location,
        verified_only=verified_only,
        sort=sort,
        search=q,
        skip=skip,
        limit=limit,
    )
    return CampaignListResponse(campaigns=campaigns, total=total)


@router.get("/my", response_model=CampaignListResponse)
async def list_my_campaigns(
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
):
    """Campaigns created by the caller"""
    campaigns, total = await context.campaigns.list_campaigns(db=db, created_by=actor.id)
    return CampaignListResponse(campaigns=campaigns, total=total)


@router.get("/code/{code}", response_model=CampaignResponse)
async def get_campaign_by_code(
    code: str = Path(..., min_length=1, max_length=16),
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
):
    """Look a campaign up by its shareable code"""
    return await context.campaigns.get_campaign_by_code(db=db, code=code)


@router.get("/{campaign_id}", response_model=CampaignResponse)
async def get_campaign(
    campaign_id: int,
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
):
    """Get a campaign by ID"""
    return await context.campaigns.get_campaign(db=db, campaign_id=campaign_id)


@router.get("/{campaign_id}/donations", response_model=DonationListResponse)
async def list_campaign_donations(
    campaign_id: int,
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
):
    """Donations recorded against a campaign, newest first"""
    donations = await context.donations.list_for_campaign(db=db, campaign_id=campaign_id)
    return DonationListResponse(donations=donations, total=len(donations))
