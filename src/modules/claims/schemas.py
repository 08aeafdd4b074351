# src/modules/claims/schemas.py
"""Claim Pydantic schemas."""

from typing import Optional, List, Dict
from datetime import datetime, date
from decimal import Decimal
from pydantic import BaseModel
from uuid import UUID
from enum import Enum

from src.modules.charges.schemas import ChargeCategory


class ClaimStatus(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


# ============================================================================
# REQUEST SCHEMAS
# ============================================================================

class ClaimGenerateRequest(BaseModel):
    notes: Optional[str] = None


class ClaimStatusUpdateRequest(BaseModel):
    status: ClaimStatus
    rejection_reason: Optional[str] = None
    notes: Optional[str] = None


# ============================================================================
# RESPONSE SCHEMAS
# ============================================================================

class ClaimItemResponse(BaseModel):
    position: int
    encounter_charge_id: Optional[UUID] = None
    charge_id: Optional[UUID] = None
    charge_type: ChargeCategory
    description: str
    quantity: int
    unit_price: Decimal
    total_amount: Decimal
    patient_portion: Decimal
    hmo_portion: Decimal


class ClaimResponse(BaseModel):
    id: UUID
    claim_number: str
    patient_id: UUID
    hmo_id: UUID
    encounter_id: UUID
    total_claim_amount: Decimal
    status: ClaimStatus
    submitted_date: Optional[datetime] = None
    approved_date: Optional[datetime] = None
    paid_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    notes: Optional[str] = None
    items: List[ClaimItemResponse]
    created_at: datetime


class ClaimListResponse(BaseModel):
    claims: List[ClaimResponse]
    total: int
    total_amount: Decimal


class StatusBucket(BaseModel):
    count: int
    amount: Decimal


class HMOClaimSummary(BaseModel):
    hmo_id: UUID
    hmo_name: str
    count: int
    amount: Decimal


class ClaimSummaryResponse(BaseModel):
    total_claims: int
    total_amount: Decimal
    by_status: Dict[str, StatusBucket]
    by_hmo: List[HMOClaimSummary]
    start_date: Optional[date] = None
    end_date: Optional[date] = None
