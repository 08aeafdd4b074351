# src/modules/receipts/schemas.py
"""Receipt and payment Pydantic schemas."""

from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field
from uuid import UUID
from enum import Enum


class PaymentMethod(str, Enum):
    CASH = "cash"
    CARD = "card"
    INSURANCE = "insurance"
    DEPOSIT = "deposit"
    RETAINERSHIP = "retainership"


class ReceiptStatus(str, Enum):
    ACTIVE = "active"
    REVERSED = "reversed"


# ============================================================================
# REQUEST SCHEMAS
# ============================================================================

class CollectPaymentRequest(BaseModel):
    """Settle a set of pending encounter charges."""
    encounter_id: UUID
    charge_ids: List[UUID] = Field(..., min_length=1)
    payment_method: PaymentMethod = PaymentMethod.CASH


class ReverseReceiptRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class ValidateReceiptRequest(BaseModel):
    receipt_number: str = Field(..., min_length=1)
    department: str = Field(..., min_length=1)


# ============================================================================
# RESPONSE SCHEMAS
# ============================================================================

class ReceiptValidationResponse(BaseModel):
    user_id: UUID
    department: str
    timestamp: datetime


class ReceiptResponse(BaseModel):
    id: UUID
    receipt_number: str
    patient_id: UUID
    encounter_id: Optional[UUID] = None
    invoice_id: Optional[UUID] = None
    charge_ids: List[UUID]
    amount_paid: Decimal
    payment_method: PaymentMethod
    cashier_id: Optional[UUID] = None
    payment_date: datetime
    status: ReceiptStatus
    validated: bool
    validations: List[ReceiptValidationResponse]
    reversal_reason: Optional[str] = None
    reversed_at: Optional[datetime] = None
    reversed_by: Optional[UUID] = None


class ReceiptListResponse(BaseModel):
    receipts: List[ReceiptResponse]
    total: int
    total_amount: Decimal


class ReceiptWithClaimResponse(BaseModel):
    """A receipt together with the claim raised for its encounter, if any."""
    receipt: ReceiptResponse
    claim_id: Optional[UUID] = None
    claim_number: Optional[str] = None
    claim_status: Optional[str] = None


class ReceiptWithClaimListResponse(BaseModel):
    receipts: List[ReceiptWithClaimResponse]
    total: int
