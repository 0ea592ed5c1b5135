"""
Typed failures raised by the lending, account and treasury services.

Every error is local to the loan or account being mutated: the service rolls
back its unit of work before raising, so callers can surface the error and,
where ``retryable`` is set, simply repeat the request.
"""
from typing import Any, Dict, Optional


class LendingError(Exception):
    """Base class for all money-movement lifecycle errors"""

    code = "lending_error"
    status_code = 400
    retryable = False

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "error": self.code,
            "detail": self.message,
            "retryable": self.retryable,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class InvalidAmount(LendingError):
    code = "invalid_amount"
    status_code = 422


class ExceedsBalance(LendingError):
    code = "exceeds_balance"
    status_code = 422


class DepositNotMet(LendingError):
    code = "deposit_not_met"
    status_code = 409


class InsufficientTreasury(LendingError):
    code = "insufficient_treasury"
    status_code = 409


class Unauthorized(LendingError):
    code = "unauthorized"
    status_code = 401


class TreasuryRace(LendingError):
    """Conditional treasury debit matched no row; the loan stays approved"""
    code = "treasury_race"
    status_code = 409
    retryable = True


class PartialDisbursement(LendingError):
    """Debit/credit pair could not both commit; nothing was applied"""
    code = "partial_disbursement"
    status_code = 409
    retryable = True


class NotFound(LendingError):
    code = "not_found"
    status_code = 404


class InvalidTransition(LendingError):
    code = "invalid_transition"
    status_code = 409
