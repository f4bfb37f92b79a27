from typing import Callable, TypeVar
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import structlog

from trustfund.core.circuit_breaker import CircuitBreaker, CircuitBreakerError
from trustfund.core.errors import TrustFundError, InternalError, ServiceUnavailable

logger = structlog.get_logger(__name__)

T = TypeVar("T")


async def guarded_db_call(db: Session, breaker: CircuitBreaker, func: Callable[[], T], operation: str) -> T:
    """Run ``func`` under the circuit breaker, rolling back on any failure.

    Domain errors propagate unchanged, storage faults become InternalError
    and an open circuit becomes ServiceUnavailable.
    """
    try:
        return await breaker.call(func)
    except CircuitBreakerError:
        db.rollback()
        logger.warning("Circuit breaker open, service temporarily unavailable", operation=operation)
        raise ServiceUnavailable("Service temporarily unavailable")
    except TrustFundError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Database operation failed", operation=operation, error=str(e))
        raise InternalError(f"Failed to {operation}") from e
