import asyncio
from enum import Enum
from typing import Callable, Any, Optional, Type
from datetime import datetime, timedelta
from sqlalchemy.exc import SQLAlchemyError
import structlog

logger = structlog.get_logger(__name__)


class CircuitState(Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreakerError(Exception):
    """Raised instead of calling through while the circuit is open"""
    pass


class CircuitBreaker:
    """Circuit breaker guarding database work"""

    def __init__(self,
                 failure_threshold: int = 5,
                 recovery_timeout: timedelta = timedelta(seconds=30),
                 expected_exception: Type[BaseException] = SQLAlchemyError):
        """
        Initialize circuit breaker

        Args:
            failure_threshold: Number of storage failures before opening circuit
            recovery_timeout: Time to wait before trying half-open state
            expected_exception: Exception type counted as a storage failure;
                domain errors raised inside the guarded call pass through
                without touching the failure count
        """
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.expected_exception = expected_exception

        self.failure_count = 0
        self.last_failure_time: Optional[datetime] = None
        self.state = CircuitState.CLOSED

    @classmethod
    def from_settings(cls, settings) -> "CircuitBreaker":
        return cls(
            failure_threshold=settings.circuit_breaker_threshold,
            recovery_timeout=timedelta(seconds=settings.circuit_breaker_timeout),
        )

    def _should_attempt_reset(self) -> bool:
        if self.state != CircuitState.OPEN or not self.last_failure_time:
            return False
        return datetime.now() - self.last_failure_time >= self.recovery_timeout

    def _on_success(self):
        self.failure_count = 0
        self.last_failure_time = None

        if self.state != CircuitState.CLOSED:
            logger.info("Circuit breaker closed after successful operation")
            self.state = CircuitState.CLOSED

    def _on_failure(self, exception: BaseException):
        self.failure_count += 1
        self.last_failure_time = datetime.now()

        if self.failure_count >= self.failure_threshold and self.state != CircuitState.OPEN:
            logger.warning("Circuit breaker opened due to storage failures",
                           failure_count=self.failure_count,
                           threshold=self.failure_threshold,
                           error=str(exception))
            self.state = CircuitState.OPEN

    async def call(self, func: Callable, *args, **kwargs) -> Any:
        """Execute function with circuit breaker protection"""
        if self._should_attempt_reset():
            logger.info("Circuit breaker attempting half-open state")
            self.state = CircuitState.HALF_OPEN

        if self.state == CircuitState.OPEN:
            raise CircuitBreakerError("Circuit breaker is OPEN - service temporarily unavailable")

        try:
            if asyncio.iscoroutinefunction(func):
                result = await func(*args, **kwargs)
            else:
                result = func(*args, **kwargs)
        except self.expected_exception as e:
            self._on_failure(e)
            raise

        self._on_success()
        return result

    def get_state(self) -> dict:
        """Get current circuit breaker state"""
        return {
            "state": self.state.value,
            "failure_count": self.failure_count,
            "failure_threshold": self.failure_threshold,
            "last_failure_time": self.last_failure_time.isoformat() if self.last_failure_time else None,
            "recovery_timeout_seconds": self.recovery_timeout.total_seconds()
        }
