# src/modules/invoices/schemas.py
"""Invoice Pydantic schemas."""

from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field
from uuid import UUID
from enum import Enum

from src.modules.charges.schemas import ChargeCategory
from src.modules.receipts.schemas import PaymentMethod


class InvoiceStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"
    REVERSED = "reversed"


class InvoiceItem(BaseModel):
    description: str = Field(..., min_length=1)
    cost: Decimal = Field(..., ge=0)


# ============================================================================
# REQUEST SCHEMAS
# ============================================================================

class InvoiceCreateRequest(BaseModel):
    patient_id: UUID
    encounter_id: Optional[UUID] = None
    items: List[InvoiceItem] = Field(..., min_length=1)
    payment_method: PaymentMethod = PaymentMethod.CASH
    fee_type: ChargeCategory = ChargeCategory.OTHER
    department: str = "General"


class PayInvoiceRequest(BaseModel):
    payment_method: PaymentMethod = PaymentMethod.CASH


class ReverseInvoiceRequest(BaseModel):
    reason: Optional[str] = None


class BulkPayInsuranceRequest(BaseModel):
    invoice_ids: List[UUID] = Field(..., min_length=1)


# ============================================================================
# RESPONSE SCHEMAS
# ============================================================================

class InvoiceResponse(BaseModel):
    id: UUID
    patient_id: UUID
    encounter_id: Optional[UUID] = None
    items: List[InvoiceItem]
    total_amount: Decimal
    status: InvoiceStatus
    payment_method: PaymentMethod
    fee_type: ChargeCategory
    department: str
    generated_by: Optional[UUID] = None
    paid_at: Optional[datetime] = None
    receipt_number: Optional[str] = None
    reversal_reason: Optional[str] = None
    reversed_at: Optional[datetime] = None
    reversed_by: Optional[UUID] = None
    created_at: datetime


class InvoiceListResponse(BaseModel):
    invoices: List[InvoiceResponse]
    total: int


class BulkPayResponse(BaseModel):
    updated: int
