from sqlalchemy import update, or_, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import List, Optional, Tuple
import structlog

from trustfund.cache.redis import RedisCache
from trustfund.core.circuit_breaker import CircuitBreaker
from trustfund.core.errors import Conflict, Forbidden, NotFound, ValidationError
from trustfund.middleware.metrics import campaigns_created_total
from trustfund.models.base import MAX_AMOUNT
from trustfund.models.campaign import Campaign, Cause
from trustfund.schemas.campaign import CampaignResponse, CampaignSort, CreateCampaignRequest
from trustfund.services.base import guarded_db_call
from trustfund.services.code_generator import CodeGenerator
from trustfund.services.verification import can_create

logger = structlog.get_logger(__name__)


class CampaignService:
    """Campaign registry.

    ``create_campaign`` is the only way a campaign comes into existence and
    ``apply_donation`` is the only way its collected amount changes.
    """

    def __init__(self, breaker: CircuitBreaker, cache: RedisCache, code_generator: CodeGenerator):
        self.breaker = breaker
        self.cache = cache
        self.code_generator = code_generator

    @staticmethod
    def _validate(campaign_data: CreateCampaignRequest):
        if not campaign_data.title or not campaign_data.title.strip():
            raise ValidationError("title: must not be empty")
        if not campaign_data.description or not campaign_data.description.strip():
            raise ValidationError("description: must not be empty")
        if campaign_data.goal_amount <= 0:
            raise ValidationError("goalAmount: must be greater than 0")
        if campaign_data.goal_amount > MAX_AMOUNT:
            raise ValidationError(f"goalAmount: must not exceed {MAX_AMOUNT}")
        if campaign_data.cause != Cause.MEDICAL:
            if campaign_data.is_temporary:
                raise ValidationError("isTemporary: only Medical campaigns can be temporary")
            if campaign_data.hospital_email:
                raise ValidationError("hospitalEmail: only Medical campaigns take a hospital contact")

    @staticmethod
    def code_exists(db: Session, code: str) -> bool:
        return db.query(Campaign.id).filter(Campaign.unique_code == code).first() is not None

    async def create_campaign(self, db: Session, campaign_data: CreateCampaignRequest, actor) -> CampaignResponse:
        """Validate, gate and persist a new campaign with a fresh code"""
        self._validate(campaign_data)

        decision = can_create(actor, campaign_data.cause)
        if not decision:
            logger.warning("Campaign creation denied",
                           actor_id=actor.id,
                           cause=campaign_data.cause.value,
                           reason=decision.reason)
            raise Forbidden(decision.reason)

        def db_create():
            code = self.code_generator.generate(lambda candidate: self.code_exists(db, candidate))
            db_campaign = Campaign(
                title=campaign_data.title.strip(),
                description=campaign_data.description.strip(),
                image_url=campaign_data.image_url,
                location=campaign_data.location,
                cause=campaign_data.cause,
                goal_amount=campaign_data.goal_amount,
                collected_amount=0,
                unique_code=code,
                verified=False,
                is_temporary=campaign_data.is_temporary,
                hospital_email=campaign_data.hospital_email,
                created_by=actor.id,
            )
            db.add(db_campaign)
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise Conflict(f"Campaign code {code} is already taken") from e
            db.refresh(db_campaign)
            return db_campaign

        db_campaign = await guarded_db_call(db, self.breaker, db_create, "create campaign")

        campaigns_created_total.labels(cause=db_campaign.cause.value).inc()
        logger.info("Campaign created successfully",
                    campaign_id=db_campaign.id,
                    code=db_campaign.unique_code,
                    cause=db_campaign.cause.value,
                    created_by=actor.id)
        return CampaignResponse.model_validate(db_campaign)

    @staticmethod
    def load(db: Session, campaign_id: int) -> Campaign:
        """Fetch the ORM row or raise NotFound"""
        db_campaign = db.query(Campaign).filter(Campaign.id == campaign_id).first()
        if db_campaign is None:
            raise NotFound(f"Campaign {campaign_id} not found")
        return db_campaign

    async def get_campaign(self, db: Session, campaign_id: int) -> CampaignResponse:
        """Get a campaign by ID, served from cache when possible"""
        cached = self.cache.get_campaign(campaign_id)
        if cached:
            return CampaignResponse.model_validate(cached)

        db_campaign = await guarded_db_call(db, self.breaker, lambda: self.load(db, campaign_id), "get campaign")
        campaign = CampaignResponse.model_validate(db_campaign)
        self.cache.set_campaign(campaign_id, campaign.model_dump(mode="json"))
        return campaign

    async def get_campaign_by_code(self, db: Session, code: str) -> CampaignResponse:
        """Look a campaign up by its public code (case-insensitive)"""
        normalized = code.strip().upper()

        def db_query():
            return db.query(Campaign).filter(Campaign.unique_code == normalized).first()

        db_campaign = await guarded_db_call(db, self.breaker, db_query, "get campaign by code")
        if db_campaign is None:
            raise NotFound(f"Campaign with code {normalized} not found")
        return CampaignResponse.model_validate(db_campaign)

    async def list_campaigns(
        self,
        db: Session,
        cause: Optional[Cause] = None,
        location: Optional[str] = None,
        verified_only: bool = False,
        sort: CampaignSort = CampaignSort.NEWEST,
        search: Optional[str] = None,
        created_by: Optional[str] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[List[CampaignResponse], int]:
        """Filtered, sorted projection of the registry"""

        def db_query():
            query = db.query(Campaign)
            if cause is not None:
                query = query.filter(Campaign.cause == cause)
            if location:
                query = query.filter(Campaign.location == location)
            if verified_only:
                query = query.filter(Campaign.verified.is_(True))
            if created_by:
                query = query.filter(Campaign.created_by == created_by)
            if search:
                term = search.strip()
                query = query.filter(or_(
                    func.lower(Campaign.title).contains(term.lower(), autoescape=True),
                    Campaign.unique_code.contains(term.upper(), autoescape=True),
                ))

            total = query.count()

            if sort == CampaignSort.FUNDED:
                query = query.order_by(Campaign.collected_amount.desc(), Campaign.id.desc())
            elif sort == CampaignSort.VERIFIED:
                # Ties keep creation order
                query = query.order_by(Campaign.verified.desc(), Campaign.id.asc())
            else:
                query = query.order_by(Campaign.created_at.desc(), Campaign.id.desc())

            return query.offset(skip).limit(limit).all(), total

        db_campaigns, total = await guarded_db_call(db, self.breaker, db_query, "list campaigns")
        campaigns = [CampaignResponse.model_validate(c) for c in db_campaigns]
        logger.info("Campaigns retrieved successfully", count=len(campaigns), total=total, sort=sort.value)
        return campaigns, total

    def apply_donation(self, db: Session, campaign_id: int, principal: int) -> int:
        """Atomically add ``principal`` to the collected amount.

        Issued as one UPDATE so concurrent donations never lose an
        increment. Runs inside the caller's transaction and does not commit.
        """
        stmt = (
            update(Campaign)
            .where(Campaign.id == campaign_id)
            .values(collected_amount=Campaign.collected_amount + principal)
            .returning(Campaign.collected_amount)
            .execution_options(synchronize_session=False)
        )
        new_total = db.execute(stmt).scalar_one_or_none()
        if new_total is None:
            raise NotFound(f"Campaign {campaign_id} not found")
        return new_total

    async def set_verified(self, db: Session, campaign_id: int, verified: bool) -> CampaignResponse:
        """Admin flip of the verified flag; repeating it is a no-op"""

        def db_update():
            db_campaign = self.load(db, campaign_id)
            if db_campaign.verified != verified:
                db_campaign.verified = verified
                db.commit()
                db.refresh(db_campaign)
            return db_campaign

        db_campaign = await guarded_db_call(db, self.breaker, db_update, "set campaign verification")
        self.invalidate(campaign_id)
        logger.info("Campaign verification updated", campaign_id=campaign_id, verified=verified)
        return CampaignResponse.model_validate(db_campaign)

    def invalidate(self, campaign_id: int):
        self.cache.delete_campaign(campaign_id)
