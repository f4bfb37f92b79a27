from sqlalchemy import (
    Column, Integer, BigInteger, String, DateTime, Boolean, ForeignKey, CheckConstraint, func,
)
from trustfund.models.base import Base


class Donation(Base):
    """Immutable ledger entry for a single contribution"""
    __tablename__ = "donations"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_donations_amount_positive"),
        CheckConstraint("tip_amount >= 0", name="ck_donations_tip_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    campaign_id = Column(Integer, ForeignKey("campaigns.id"), nullable=False, index=True)
    donor_id = Column(String, ForeignKey("users.id"), nullable=True, index=True)  # Nullable for anonymous donations
    donor_name = Column(String, nullable=True)
    amount = Column(BigInteger, nullable=False)  # Principal, counted towards the campaign
    tip_amount = Column(BigInteger, nullable=False, default=0)  # Platform support, never counted
    released = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return (
            f"<Donation(id={self.id}, campaign_id={self.campaign_id}, amount={self.amount}, "
            f"tip={self.tip_amount}, released={self.released})>"
        )
