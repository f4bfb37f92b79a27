from sqlalchemy.orm import Session
from typing import List, Optional
import structlog

from trustfund.core.circuit_breaker import CircuitBreaker
from trustfund.core.errors import Forbidden, InvalidAmount
from trustfund.middleware.metrics import (
    donation_principal_total,
    donation_tips_total,
    donations_recorded_total,
)
from trustfund.middleware.tracing import get_tracer
from trustfund.models.base import BIGINT_MAX, MAX_AMOUNT
from trustfund.models.donation import Donation
from trustfund.schemas.donation import DonationResponse
from trustfund.services.base import guarded_db_call
from trustfund.services.campaign import CampaignService
from trustfund.services.verification import can_release_funds

logger = structlog.get_logger(__name__)
tracer = get_tracer(__name__)


class DonationService:
    """Donation ledger: append-only records plus the campaign increment"""

    def __init__(self, breaker: CircuitBreaker, campaigns: CampaignService):
        self.breaker = breaker
        self.campaigns = campaigns

    async def record_donation(
        self,
        db: Session,
        campaign_id: int,
        amount: int,
        tip_amount: int = 0,
        donor=None,
        donor_name: Optional[str] = None,
    ) -> DonationResponse:
        """Record a donation and add its principal to the campaign.

        The ledger row and the increment commit together or not at all.
        ``released`` reflects the campaign's state at this moment only.
        """
        if amount is None or amount <= 0:
            raise InvalidAmount("amount: donation must be a positive number of rupees")
        if amount > MAX_AMOUNT:
            raise InvalidAmount(f"amount: donation must not exceed {MAX_AMOUNT}")
        if tip_amount is None or tip_amount < 0:
            raise InvalidAmount("tipAmount: tip cannot be negative")
        if tip_amount > MAX_AMOUNT:
            raise InvalidAmount(f"tipAmount: tip must not exceed {MAX_AMOUNT}")

        def db_record():
            campaign = CampaignService.load(db, campaign_id)
            if campaign.collected_amount > BIGINT_MAX - amount:
                raise InvalidAmount(f"amount: campaign {campaign_id} cannot accept this donation")
            decision = can_release_funds(campaign)

            db_donation = Donation(
                campaign_id=campaign_id,
                donor_id=donor.id if donor is not None else None,
                donor_name=donor_name,
                amount=amount,
                tip_amount=tip_amount,
                released=decision.allowed,
            )
            db.add(db_donation)
            db.flush()

            new_total = self.campaigns.apply_donation(db, campaign_id, amount)
            db.commit()
            db.refresh(db_donation)
            return db_donation, new_total, decision

        with tracer.start_as_current_span("ledger.record_donation"):
            db_donation, new_total, decision = await guarded_db_call(
                db, self.breaker, db_record, "record donation"
            )

        self.campaigns.invalidate(campaign_id)

        donations_recorded_total.labels(released=str(db_donation.released).lower()).inc()
        donation_principal_total.inc(amount)
        if tip_amount:
            donation_tips_total.inc(tip_amount)

        logger.info("Donation recorded",
                    donation_id=db_donation.id,
                    campaign_id=campaign_id,
                    amount=amount,
                    tip_amount=tip_amount,
                    collected_amount=new_total,
                    released=db_donation.released,
                    hold_reason=decision.reason)
        return DonationResponse.model_validate(db_donation)

    async def list_for_campaign(self, db: Session, campaign_id: int) -> List[DonationResponse]:
        """Donations of one campaign, newest first"""

        def db_query():
            CampaignService.load(db, campaign_id)
            return (
                db.query(Donation)
                .filter(Donation.campaign_id == campaign_id)
                .order_by(Donation.created_at.desc(), Donation.id.desc())
                .all()
            )

        db_donations = await guarded_db_call(db, self.breaker, db_query, "list campaign donations")
        return [DonationResponse.model_validate(d) for d in db_donations]

    async def list_for_donor(self, db: Session, donor_id: str, skip: int = 0, limit: int = 100) -> List[DonationResponse]:
        """Donations made by a registered donor, newest first"""

        def db_query():
            return (
                db.query(Donation)
                .filter(Donation.donor_id == donor_id)
                .order_by(Donation.created_at.desc(), Donation.id.desc())
                .offset(skip)
                .limit(limit)
                .all()
            )

        db_donations = await guarded_db_call(db, self.breaker, db_query, "list donor donations")
        return [DonationResponse.model_validate(d) for d in db_donations]

    async def release_held_donations(self, db: Session, campaign_id: int) -> int:
        """Release donations held while the campaign was unverified.

        Explicit admin follow-up; verifying a campaign never does this on
        its own.
        """

        def db_release():
            campaign = CampaignService.load(db, campaign_id)
            decision = can_release_funds(campaign)
            if not decision:
                raise Forbidden(decision.reason)

            released = (
                db.query(Donation)
                .filter(Donation.campaign_id == campaign_id, Donation.released.is_(False))
                .update({Donation.released: True}, synchronize_session=False)
            )
            db.commit()
            return released

        released = await guarded_db_call(db, self.breaker, db_release, "release held donations")
        logger.info("Held donations released", campaign_id=campaign_id, released_count=released)
        return released
