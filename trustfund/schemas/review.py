from pydantic import Field
from typing import Optional
from datetime import datetime

from trustfund.schemas.common import CamelModel


class CreateReviewRequest(CamelModel):
    user_name: str = Field(..., min_length=1, max_length=255)
    user_image: Optional[str] = None
    review_text: str = Field(..., min_length=1, max_length=2000)
    rating: int = Field(..., ge=1, le=5)


class ReviewResponse(CamelModel):
    id: int
    user_name: str
    user_image: Optional[str] = None
    review_text: str
    rating: int
    created_at: datetime
