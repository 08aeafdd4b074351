# src/common/exceptions.py
"""Billing error hierarchy raised by the service layer."""

from typing import Any, Dict, Optional


class BillingError(Exception):
    """Base exception for billing, payment and claim errors."""

    status_code: int = 400

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class NotFoundError(BillingError):
    """Raised when a charge, patient, encounter, HMO, claim or receipt is missing."""

    status_code = 404


class InvalidStateError(BillingError):
    """Raised when a record is not in a state that allows the operation."""

    status_code = 400


class ConflictError(BillingError):
    """Raised on duplicate claims, duplicate receipt numbers or already-settled charges."""

    status_code = 409


class InsufficientFundsError(BillingError):
    """Raised when a deposit or retainership pool cannot cover the amount due."""

    status_code = 400

    def __init__(self, message: str, balance, required):
        super().__init__(message, {"balance": str(balance), "required": str(required)})
        self.balance = balance
        self.required = required


class ValidationError(BillingError):
    """Raised when required input is missing or malformed."""

    status_code = 422
