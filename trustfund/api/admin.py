from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
import structlog

from trustfund.api.deps import get_context, require_admin
from trustfund.context import AppContext
from trustfund.database.database import get_db
from trustfund.models.user import User
from trustfund.schemas.campaign import CampaignResponse, ReleaseFundsResponse, SetCampaignVerifiedRequest
from trustfund.schemas.moderation import (
    NgoVerificationListResponse,
    NgoVerificationResponse,
    ResolveNgoVerificationRequest,
    ResolveTicketRequest,
    TicketListResponse,
    TicketResponse,
)
from trustfund.schemas.user import UpdateUserFlagsRequest, UserResponse

router = APIRouter(prefix="/admin", tags=["admin"])
logger = structlog.get_logger(__name__)


@router.get("/ngo-verifications", response_model=NgoVerificationListResponse)
async def list_pending_verifications(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
):
    verifications = await context.verifications.list_pending(db)
    return NgoVerificationListResponse(verifications=verifications, total=len(verifications))


@router.patch("/ngo-verifications/{verification_id}", response_model=NgoVerificationResponse)
async def resolve_verification(
    verification_id: int,
    resolution: ResolveNgoVerificationRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
):
    """Approve or reject an NGO verification request"""
    logger.info("Resolving verification request", verification_id=verification_id,
                verified=resolution.verified, admin_id=admin.id)
    return await context.verifications.resolve(db, verification_id, resolution.verified)


@router.get("/tickets", response_model=TicketListResponse)
async def list_open_tickets(
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
):
    tickets = await context.tickets.list_pending(db)
    return TicketListResponse(tickets=tickets, total=len(tickets))


@router.patch("/tickets/{ticket_id}", response_model=TicketResponse)
async def resolve_ticket(
    ticket_id: int,
    resolution: ResolveTicketRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
):
    return await context.tickets.resolve(db, ticket_id, resolution.status)


@router.patch("/campaigns/{campaign_id}", response_model=CampaignResponse)
async def set_campaign_verified(
    campaign_id: int,
    request_data: SetCampaignVerifiedRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
):
    """Flip a campaign's verified flag; held donations stay held"""
    return await context.campaigns.set_verified(db, campaign_id, request_data.verified)


@router.post("/campaigns/{campaign_id}/release", response_model=ReleaseFundsResponse)
async def release_campaign_funds(
    campaign_id: int,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
):
    """Release donations held while a temporary campaign was unverified"""
    released = await context.donations.release_held_donations(db, campaign_id)
    return ReleaseFundsResponse(campaign_id=campaign_id, released_count=released)


@router.patch("/users/{user_id}", response_model=UserResponse)
async def update_user_flags(
    user_id: str,
    flags: UpdateUserFlagsRequest,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
):
    return await context.users.update_flags(db, user_id, flags)
