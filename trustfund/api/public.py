from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from trustfund.api.deps import get_context, get_current_actor
from trustfund.context import AppContext
from trustfund.database.database import get_db
from trustfund.models.user import User
from trustfund.schemas.review import CreateReviewRequest, ReviewResponse
from trustfund.schemas.stats import StatsResponse
from trustfund.schemas.user import UserResponse

router = APIRouter(tags=["platform"])


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
):
    """Platform rollups, recomputed on every call"""
    return await context.stats.compute(db)


@router.get("/auth/user", response_model=UserResponse)
async def get_me(actor: User = Depends(get_current_actor)):
    """The resolved caller with its verification flags"""
    return actor


@router.get("/reviews", response_model=list[ReviewResponse])
async def list_reviews(
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
):
    return await context.reviews.list_reviews(db, limit=limit)


@router.post("/reviews", response_model=ReviewResponse, status_code=201)
async def create_review(
    review_data: CreateReviewRequest,
    actor: User = Depends(get_current_actor),
    db: Session = Depends(get_db),
    context: AppContext = Depends(get_context),
):
    return await context.reviews.create_review(db, review_data)
