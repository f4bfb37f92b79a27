from .common import CamelModel, MessageResponse
from .campaign import (
    CampaignSort,
    CreateCampaignRequest,
    SetCampaignVerifiedRequest,
    CampaignResponse,
    CampaignListResponse,
    ReleaseFundsResponse,
)
from .donation import CreateDonationRequest, DonationResponse, DonationListResponse
from .moderation import (
    CreateNgoVerificationRequest,
    ResolveNgoVerificationRequest,
    NgoVerificationResponse,
    NgoVerificationListResponse,
    CreateTicketRequest,
    ResolveTicketRequest,
    TicketResponse,
    TicketListResponse,
)
from .stats import StatsResponse
from .user import UserResponse, UpdateUserFlagsRequest
from .review import CreateReviewRequest, ReviewResponse

__all__ = [
    "CamelModel",
    "MessageResponse",
    "CampaignSort",
    "CreateCampaignRequest",
    "SetCampaignVerifiedRequest",
    "CampaignResponse",
    "CampaignListResponse",
    "ReleaseFundsResponse",
    "CreateDonationRequest",
    "DonationResponse",
    "DonationListResponse",
    "CreateNgoVerificationRequest",
    "ResolveNgoVerificationRequest",
    "NgoVerificationResponse",
    "NgoVerificationListResponse",
    "CreateTicketRequest",
    "ResolveTicketRequest",
    "TicketResponse",
    "TicketListResponse",
    "StatsResponse",
    "UserResponse",
    "UpdateUserFlagsRequest",
    "CreateReviewRequest",
    "ReviewResponse",
]
