"""
Application context

Everything a request handler needs is built once by ``AppContext.build``
and attached to ``app.state.context``; nothing is cached at module level.
"""
from dataclasses import dataclass
from datetime import timedelta
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from trustfund.cache.redis import RedisCache
from trustfund.core.circuit_breaker import CircuitBreaker
from trustfund.core.config import Settings
from trustfund.database.database import build_engine, build_session_factory
from trustfund.services.campaign import CampaignService
from trustfund.services.code_generator import CodeGenerator
from trustfund.services.donation import DonationService
from trustfund.services.moderation import NgoVerificationQueue, TicketQueue
from trustfund.services.review import ReviewService
from trustfund.services.stats import StatsService
from trustfund.services.user import UserService


@dataclass
class AppContext:
    settings: Settings
    engine: Engine
    session_factory: sessionmaker
    cache: RedisCache
    breaker: CircuitBreaker
    users: UserService
    campaigns: CampaignService
    donations: DonationService
    stats: StatsService
    verifications: NgoVerificationQueue
    tickets: TicketQueue
    reviews: ReviewService

    @classmethod
    def build(cls, settings: Settings) -> "AppContext":
        engine = build_engine(settings)
        cache = RedisCache(settings.redis_url, ttl=timedelta(seconds=settings.cache_ttl_seconds))
        breaker = CircuitBreaker.from_settings(settings)
        campaigns = CampaignService(
            breaker=breaker,
            cache=cache,
            code_generator=CodeGenerator(max_attempts=settings.code_max_attempts),
        )
        return cls(
            settings=settings,
            engine=engine,
            session_factory=build_session_factory(engine),
            cache=cache,
            breaker=breaker,
            users=UserService(breaker),
            campaigns=campaigns,
            donations=DonationService(breaker, campaigns),
            stats=StatsService(
                breaker,
                lives_formula=settings.lives_impacted_formula,
                rupees_per_life=settings.rupees_per_life,
            ),
            verifications=NgoVerificationQueue(breaker),
            tickets=TicketQueue(breaker),
            reviews=ReviewService(breaker),
        )
