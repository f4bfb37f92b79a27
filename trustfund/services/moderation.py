from datetime import datetime, timezone
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Any, List, Optional, Type
import structlog

from trustfund.core.circuit_breaker import CircuitBreaker
from trustfund.core.errors import Conflict, NotFound, ValidationError
from trustfund.models.moderation import NgoVerification, Ticket, TicketStatus, VerificationStatus
from trustfund.models.user import User
from trustfund.schemas.common import CamelModel
from trustfund.schemas.moderation import CreateTicketRequest, NgoVerificationResponse, TicketResponse
from trustfund.services.base import guarded_db_call

logger = structlog.get_logger(__name__)


class ModerationQueue:
    """Review-state ledger shared by NGO verifications and support tickets.

    Items start in ``pending_status`` and an admin moves them to a terminal
    status. Resolving to the status an item already has is a no-op;
    resolving a terminal item to a different status is a conflict.
    """

    model: Type[Any]
    response: Type[CamelModel]
    pending_status: Any
    label: str

    def __init__(self, breaker: CircuitBreaker):
        self.breaker = breaker

    def target_status(self, outcome):
        raise NotImplementedError

    def on_resolved(self, db: Session, item):
        """Hook for side effects of a fresh resolution, inside the transaction"""

    async def list_pending(self, db: Session) -> List[CamelModel]:
        def db_query():
            return (
                db.query(self.model)
                .filter(self.model.status == self.pending_status)
                .order_by(self.model.id.asc())
                .all()
            )

        items = await guarded_db_call(db, self.breaker, db_query, f"list pending {self.label}s")
        return [self.response.model_validate(item) for item in items]

    async def resolve(self, db: Session, item_id: int, outcome) -> CamelModel:
        target = self.target_status(outcome)

        def db_resolve():
            item = db.query(self.model).filter(self.model.id == item_id).first()
            if item is None:
                raise NotFound(f"{self.label.capitalize()} {item_id} not found")
            if item.status == target:
                return item, False
            if item.status != self.pending_status:
                raise Conflict(f"{self.label.capitalize()} {item_id} is already {item.status.value}")

            item.status = target
            item.resolved_at = datetime.now(timezone.utc)
            self.on_resolved(db, item)
            db.commit()
            db.refresh(item)
            return item, True

        item, changed = await guarded_db_call(db, self.breaker, db_resolve, f"resolve {self.label}")
        if changed:
            logger.info("Moderation item resolved", kind=self.label, item_id=item_id, status=target.value)
        else:
            logger.debug("Moderation item already resolved", kind=self.label, item_id=item_id, status=target.value)
        return self.response.model_validate(item)


class NgoVerificationQueue(ModerationQueue):
    """none -> pending -> verified | rejected; approval marks the user as an NGO"""

    model = NgoVerification
    response = NgoVerificationResponse
    pending_status = VerificationStatus.PENDING
    label = "verification request"

    def target_status(self, outcome: bool) -> VerificationStatus:
        return VerificationStatus.VERIFIED if outcome else VerificationStatus.REJECTED

    def on_resolved(self, db: Session, item: NgoVerification):
        if item.status == VerificationStatus.VERIFIED:
            user = db.query(User).filter(User.id == item.user_id).first()
            if user is not None:
                user.is_ngo = True

    async def submit(self, db: Session, user, documents_url: str) -> NgoVerificationResponse:
        """File a request; a user holds at most one pending request at a time"""
        if not documents_url or not documents_url.strip():
            raise ValidationError("documentsUrl: must not be empty")

        def db_submit():
            if user.is_ngo:
                raise Conflict("User is already a verified NGO")
            pending = (
                db.query(NgoVerification.id)
                .filter(
                    NgoVerification.user_id == user.id,
                    NgoVerification.status == VerificationStatus.PENDING,
                )
                .first()
            )
            if pending is not None:
                raise Conflict("A verification request is already pending review")

            request = NgoVerification(
                user_id=user.id,
                documents_url=documents_url.strip(),
                status=VerificationStatus.PENDING,
            )
            db.add(request)
            try:
                db.commit()
            except IntegrityError as e:
                db.rollback()
                raise Conflict("A verification request is already pending review") from e
            db.refresh(request)
            return request

        request = await guarded_db_call(db, self.breaker, db_submit, "submit verification request")
        logger.info("NGO verification requested", request_id=request.id, user_id=user.id)
        return NgoVerificationResponse.model_validate(request)

    async def get_for_user(self, db: Session, user_id: str) -> Optional[NgoVerificationResponse]:
        """Latest request of a user, or None when they never applied"""

        def db_query():
            return (
                db.query(NgoVerification)
                .filter(NgoVerification.user_id == user_id)
                .order_by(NgoVerification.requested_at.desc(), NgoVerification.id.desc())
                .first()
            )

        request = await guarded_db_call(db, self.breaker, db_query, "get verification request")
        return NgoVerificationResponse.model_validate(request) if request else None


class TicketQueue(ModerationQueue):
    """open -> resolved, one way"""

    model = Ticket
    response = TicketResponse
    pending_status = TicketStatus.OPEN
    label = "ticket"

    def target_status(self, outcome: TicketStatus) -> TicketStatus:
        if outcome != TicketStatus.RESOLVED:
            raise ValidationError("status: tickets can only be moved to resolved")
        return TicketStatus.RESOLVED

    async def submit(self, db: Session, ticket_data: CreateTicketRequest) -> TicketResponse:
        def db_submit():
            ticket = Ticket(
                name=ticket_data.name.strip(),
                email=str(ticket_data.email),
                message=ticket_data.message.strip(),
                status=TicketStatus.OPEN,
            )
            db.add(ticket)
            db.commit()
            db.refresh(ticket)
            return ticket

        ticket = await guarded_db_call(db, self.breaker, db_submit, "submit ticket")
        logger.info("Support ticket opened", ticket_id=ticket.id)
        return TicketResponse.model_validate(ticket)
