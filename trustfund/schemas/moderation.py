from pydantic import Field, EmailStr
from typing import Optional
from datetime import datetime

from trustfund.models.moderation import TicketStatus, VerificationStatus
from trustfund.schemas.common import CamelModel


class CreateNgoVerificationRequest(CamelModel):
    documents_url: str = Field(..., min_length=1, description="Public URL of the uploaded registration documents")


class ResolveNgoVerificationRequest(CamelModel):
    verified: bool = Field(..., description="true approves the request, false rejects it")


class NgoVerificationResponse(CamelModel):
    id: int
    user_id: str
    documents_url: str
    status: VerificationStatus
    verified: bool
    requested_at: datetime
    resolved_at: Optional[datetime] = None


class NgoVerificationListResponse(CamelModel):
    verifications: list[NgoVerificationResponse]
    total: int


class CreateTicketRequest(CamelModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    message: str = Field(..., min_length=1, max_length=5000)


class ResolveTicketRequest(CamelModel):
    status: TicketStatus


class TicketResponse(CamelModel):
    id: int
    name: str
    email: str
    message: str
    status: TicketStatus
    created_at: datetime
    resolved_at: Optional[datetime] = None


class TicketListResponse(CamelModel):
    tickets: list[TicketResponse]
    total: int
