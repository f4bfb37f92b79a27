from sqlalchemy import (
    Column, Integer, BigInteger, String, Text, DateTime, Boolean, ForeignKey,
    CheckConstraint, Enum, func,
)
from trustfund.models.base import Base, enum_values
import enum


class Cause(str, enum.Enum):
    """Fixed campaign categories"""
    MEDICAL = "Medical"
    EDUCATION = "Education"
    DISASTER_RELIEF = "Disaster Relief"
    COMMUNITY = "Community"


class Campaign(Base):
    """Fundraising campaign; collected_amount only ever grows through donations"""
    __tablename__ = "campaigns"
    __table_args__ = (
        CheckConstraint("goal_amount > 0", name="ck_campaigns_goal_positive"),
        CheckConstraint("collected_amount >= 0", name="ck_campaigns_collected_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=False)
    image_url = Column(String, nullable=True)
    location = Column(String, nullable=True, index=True)
    cause = Column(Enum(Cause, native_enum=False, length=32, values_callable=enum_values), nullable=False, index=True)
    goal_amount = Column(BigInteger, nullable=False)
    collected_amount = Column(BigInteger, nullable=False, default=0)
    unique_code = Column(String(16), nullable=False, unique=True, index=True)
    verified = Column(Boolean, nullable=False, default=False)
    is_temporary = Column(Boolean, nullable=False, default=False)
    hospital_email = Column(String, nullable=True)
    created_by = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return (
            f"<Campaign(id={self.id}, code='{self.unique_code}', "
            f"collected={self.collected_amount}/{self.goal_amount}, verified={self.verified})>"
        )
