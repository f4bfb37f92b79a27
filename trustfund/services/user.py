from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Dict
import structlog

from trustfund.core.circuit_breaker import CircuitBreaker
from trustfund.core.errors import Conflict, NotFound
from trustfund.models.user import User
from trustfund.schemas.user import UpdateUserFlagsRequest
from trustfund.services.base import guarded_db_call

logger = structlog.get_logger(__name__)


class UserService:
    """Actor records behind the verification gate"""

    def __init__(self, breaker: CircuitBreaker):
        self.breaker = breaker

    async def resolve_actor(self, db: Session, claims: Dict) -> User:
        """Load the user named by the token subject, creating it on first sign-in"""
        user_id = claims["sub"]

        def db_resolve():
            user = db.query(User).filter(User.id == user_id).first()
            if user is not None:
                return user, False

            user = User(
                id=user_id,
                email=claims.get("email"),
                name=claims.get("name"),
                is_ngo=False,
                is_admin=False,
                kyc_verified=False,
            )
            db.add(user)
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                # A parallel first request for the same subject may have won the insert
                existing = db.query(User).filter(User.id == user_id).first()
                if existing is None:
                    raise Conflict("Email is already registered to another account") from e
                return existing, False
            db.refresh(user)
            return user, True

        user, created = await guarded_db_call(db, self.breaker, db_resolve, "resolve user")
        if created:
            logger.info("User created on first sign-in", user_id=user_id)
        return user

    async def update_flags(self, db: Session, user_id: str, flags: UpdateUserFlagsRequest) -> User:
        """Admin update of KYC / NGO / admin flags"""
        changes = flags.model_dump(exclude_none=True)

        def db_update():
            user = db.query(User).filter(User.id == user_id).first()
            if user is None:
                raise NotFound(f"User {user_id} not found")
            for field, value in changes.items():
                setattr(user, field, value)
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise Conflict(f"Could not update user {user_id}") from e
            db.refresh(user)
            return user

        user = await guarded_db_call(db, self.breaker, db_update, "update user flags")
        logger.info("User flags updated", user_id=user_id, **changes)
        return user
