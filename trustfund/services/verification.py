"""
Verification gate: side-effect free access decisions.
"""
from dataclasses import dataclass
from typing import Optional

from trustfund.models.campaign import Cause

KYC_REQUIRED = "KYC verification is required to start a campaign"
NGO_ONLY = "Only verified NGOs can create Disaster Relief campaigns"
FUNDS_HELD = "Funds are held pending hospital / verification review"


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = GateDecision(allowed=True)


def can_create(actor, cause: Cause) -> GateDecision:
    """Decide whether ``actor`` may start a campaign under ``cause``"""
    if not actor.kyc_verified:
        return GateDecision(False, KYC_REQUIRED)
    if cause == Cause.DISASTER_RELIEF and not actor.is_ngo:
        return GateDecision(False, NGO_ONLY)
    return ALLOW


def can_release_funds(campaign) -> GateDecision:
    """Temporary campaigns hold funds until verified; all others release"""
    if not campaign.is_temporary:
        return ALLOW
    if campaign.verified:
        return ALLOW
    return GateDecision(False, FUNDS_HELD)
