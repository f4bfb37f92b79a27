from sqlalchemy import Column, String, DateTime, Boolean, func
from trustfund.models.base import Base


class User(Base):
    """Platform account, keyed by the identity provider's subject"""
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=True)
    email = Column(String, nullable=True, unique=True)
    phone = Column(String, nullable=True)
    profile_photo_url = Column(String, nullable=True)
    is_ngo = Column(Boolean, nullable=False, default=False)
    is_admin = Column(Boolean, nullable=False, default=False)
    kyc_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, is_ngo={self.is_ngo}, kyc_verified={self.kyc_verified})>"
