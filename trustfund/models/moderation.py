from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum, Index, func, text
from trustfund.models.base import Base, enum_values
import enum


class VerificationStatus(str, enum.Enum):
    """NGO verification review state"""
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class TicketStatus(str, enum.Enum):
    """Support ticket state, open -> resolved only"""
    OPEN = "open"
    RESOLVED = "resolved"


class NgoVerification(Base):
    """Request by a user to be recognised as an NGO"""
    __tablename__ = "ngo_verifications"
    __table_args__ = (
        # At most one pending request per user
        Index(
            "uq_ngo_verifications_pending_user",
            "user_id",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    documents_url = Column(String, nullable=False)
    status = Column(Enum(VerificationStatus, native_enum=False, length=16, values_callable=enum_values), nullable=False,
                    default=VerificationStatus.PENDING, index=True)
    requested_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def verified(self) -> bool:
        return self.status == VerificationStatus.VERIFIED

    def __repr__(self):
        return f"<NgoVerification(id={self.id}, user_id={self.user_id}, status='{self.status.value}')>"


class Ticket(Base):
    """Support ticket raised from the help page"""
    __tablename__ = "tickets"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    status = Column(Enum(TicketStatus, native_enum=False, length=16, values_callable=enum_values), nullable=False,
                    default=TicketStatus.OPEN, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    resolved_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self):
        return f"<Ticket(id={self.id}, status='{self.status.value}')>"
