from .base import Base
from .user import User
from .campaign import Campaign, Cause
from .donation import Donation
from .moderation import NgoVerification, Ticket, TicketStatus, VerificationStatus
from .review import Review

__all__ = [
    "Base",
    "User",
    "Campaign",
    "Cause",
    "Donation",
    "NgoVerification",
    "Ticket",
    "TicketStatus",
    "VerificationStatus",
    "Review",
]
