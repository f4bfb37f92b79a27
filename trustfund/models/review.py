from sqlalchemy import Column, Integer, String, Text, DateTime, CheckConstraint, func
from trustfund.models.base import Base


class Review(Base):
    """Testimonial shown on campaign pages"""
    __tablename__ = "reviews"
    __table_args__ = (
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating_range"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_name = Column(String, nullable=False)
    user_image = Column(String, nullable=True)
    review_text = Column(Text, nullable=False)
    rating = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
