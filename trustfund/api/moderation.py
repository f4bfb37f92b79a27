from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Optional

from trustfund.api.deps import get_context, get_current_actor
from trustfund.context import AppContext
from trustfund.database.database import get_db
from trustfund.models.user import User
from trustfund.schemas.moderation import (
    CreateNgoVerificationRequest,
    CreateTicketRequest,
    NgoVerificationResponse,
    TicketResponse,
)

router = APIRouter(tags=["moderation"])


@router.post("/ngo-verifications", response_model=NgoVerificationResponse, status_code=201)
async def submit_ngo_verification(
    request_data: CreateNgoVerificationRequest,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
):
    """Ask to be recognised as an NGO"""
    return await context.verifications.submit(db=db, user=actor, documents_url=request_data.documents_url)


@router.get("/ngo-verifications/my", response_model=Optional[NgoVerificationResponse])
async def get_my_ngo_verification(
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
):
    """Latest verification request of the caller, null when none was filed"""
    return await context.verifications.get_for_user(db=db, user_id=actor.id)


@router.post("/tickets", response_model=TicketResponse, status_code=201)
async def submit_ticket(
    ticket_data: CreateTicketRequest,
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
):
    """Open a support ticket"""
    return await context.tickets.submit(db=db, ticket_data=ticket_data)
