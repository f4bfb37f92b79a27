"""
Domain error taxonomy.

Every error carries the HTTP status it is surfaced with; the handlers
registered in ``trustfund.main`` turn them into ``{"message": ...}`` bodies.
"""


class TrustFundError(Exception):
    """Base class for all domain errors"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(TrustFundError):
    """Missing or malformed input"""
    status_code = 400


class InvalidAmount(ValidationError):
    """Donation principal or tip out of range"""


class Forbidden(TrustFundError):
    """Verification gate or role denial"""
    status_code = 403


class NotFound(TrustFundError):
    """Unknown identifier"""
    status_code = 404


class Conflict(TrustFundError):
    """Duplicate or state-conflicting write"""
    status_code = 409


class InternalError(TrustFundError):
    """Storage failure or unexpected fault"""
    status_code = 500


class CodeExhausted(InternalError):
    """Every generated campaign code collided"""


class ServiceUnavailable(InternalError):
    """Circuit breaker is open"""
    status_code = 503
