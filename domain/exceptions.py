"""Domain Errors

Every error carries a ``kind`` discriminator that the API layer renders as
``{kind, message, details}``. The base class is a ``ValueError`` so callers
that only care about "bad business input" can keep catching ``ValueError``.
"""
from typing import Any, Dict, Optional


class DomainError(ValueError):
    """Base class for every business rule failure"""

    kind = "DomainError"
    status_code = 400
    retryable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self, include_details: bool = True) -> Dict[str, Any]:
        body = {"kind": self.kind, "message": self.message}
        if include_details and self.details:
            body["details"] = self.details
        return body


class ValidationError(DomainError):
    kind = "ValidationError"


class NotFound(DomainError):
    kind = "NotFound"
    status_code = 404


class NoInventoryDefined(DomainError):
    kind = "NoInventoryDefined"


class InsufficientInventory(DomainError):
    kind = "InsufficientInventory"


class SeasonalRestriction(DomainError):
    kind = "SeasonalRestriction"


class NoRatePlanApplicable(DomainError):
    kind = "NoRatePlanApplicable"


class InsufficientCredit(DomainError):
    kind = "InsufficientCredit"


class CompanyInactive(DomainError):
    kind = "CompanyInactive"


class StateTransitionError(DomainError):
    kind = "StateTransitionError"


class IntegrityViolation(DomainError):
    kind = "IntegrityViolation"
    status_code = 500


class ConcurrencyConflict(DomainError):
    kind = "ConcurrencyConflict"
    status_code = 409
    retryable = True


class InternalError(DomainError):
    kind = "InternalError"
    status_code = 500


class CoordinatorTimeout(InternalError):
    """Raised when a booking coordinator call exceeds its wall-clock budget"""
