from sqlalchemy.orm import Session
from typing import List
import structlog

from trustfund.core.circuit_breaker import CircuitBreaker
from trustfund.models.review import Review
from trustfund.schemas.review import CreateReviewRequest, ReviewResponse
from trustfund.services.base import guarded_db_call

logger = structlog.get_logger(__name__)


class ReviewService:
    """Testimonials; created once, never edited"""

    def __init__(self, breaker: CircuitBreaker):
        self.breaker = breaker

    async def list_reviews(self, db: Session, limit: int = 20) -> List[ReviewResponse]:
        def db_query():
            return db.query(Review).order_by(Review.created_at.desc(), Review.id.desc()).limit(limit).all()

        reviews = await guarded_db_call(db, self.breaker, db_query, "list reviews")
        return [ReviewResponse.model_validate(r) for r in reviews]

    async def create_review(self, db: Session, review_data: CreateReviewRequest) -> ReviewResponse:
        def db_create():
            review = Review(**review_data.model_dump())
            db.add(review)
            db.commit()
            db.refresh(review)
            return review

        review = await guarded_db_call(db, self.breaker, db_create, "create review")
        logger.info("Review created", review_id=review.id, rating=review.rating)
        return ReviewResponse.model_validate(review)
