from sqlalchemy import func, distinct
from sqlalchemy.orm import Session
import structlog

from trustfund.core.circuit_breaker import CircuitBreaker
from trustfund.models.campaign import Campaign
from trustfund.models.donation import Donation
from trustfund.schemas.stats import StatsResponse
from trustfund.services.base import guarded_db_call

logger = structlog.get_logger(__name__)


class StatsService:
    """Platform rollups, reduced from the registry and ledger on every call.

    ``lives_impacted`` has no fixed definition; two formulas are offered:

    * ``distinct_donors``: registered donors counted once each, plus one per
      anonymous donation
    * ``per_amount``: ``total_raised // rupees_per_life``
    """

    def __init__(self, breaker: CircuitBreaker, lives_formula: str = "distinct_donors", rupees_per_life: int = 1000):
        if lives_formula not in ("distinct_donors", "per_amount"):
            raise ValueError(f"Unknown lives impacted formula: {lives_formula}")
        if rupees_per_life <= 0:
            raise ValueError("rupees_per_life must be positive")
        self.breaker = breaker
        self.lives_formula = lives_formula
        self.rupees_per_life = rupees_per_life

    def _lives_impacted(self, db: Session, total_raised: int) -> int:
        if self.lives_formula == "per_amount":
            return total_raised // self.rupees_per_life

        registered = db.query(func.count(distinct(Donation.donor_id))).filter(
            Donation.donor_id.isnot(None)
        ).scalar()
        anonymous = db.query(func.count(Donation.id)).filter(Donation.donor_id.is_(None)).scalar()
        return (registered or 0) + (anonymous or 0)

    async def compute(self, db: Session) -> StatsResponse:
        def db_query():
            total_raised, total_campaigns = db.query(
                func.coalesce(func.sum(Campaign.collected_amount), 0),
                func.count(Campaign.id),
            ).one()
            campaigns_funded = db.query(func.count(Campaign.id)).filter(
                Campaign.collected_amount >= Campaign.goal_amount
            ).scalar()
            total_raised = int(total_raised or 0)
            return StatsResponse(
                total_raised=total_raised,
                campaigns_funded=campaigns_funded or 0,
                lives_impacted=self._lives_impacted(db, total_raised),
                total_campaigns=total_campaigns or 0,
            )

        stats = await guarded_db_call(db, self.breaker, db_query, "compute stats")
        logger.debug("Stats computed", formula=self.lives_formula, total_raised=stats.total_raised)
        return stats
