# src/modules/hmo/schemas.py
"""HMO directory and retainership pool schemas."""

from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field
from uuid import UUID
from enum import Enum


class HMOCategory(str, Enum):
    PRIVATE = "Private"
    NHIA = "NHIA"
    STATE_SCHEME = "State Scheme"
    RETAINERSHIP = "Retainership"
    OTHER = "Other"


# ============================================================================
# REQUEST SCHEMAS
# ============================================================================

class HMOCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    code: Optional[str] = None
    category: HMOCategory = HMOCategory.PRIVATE
    description: Optional[str] = None
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None


class HMOUpdateRequest(BaseModel):
    """Partial update; only the fields sent are changed."""
    name: Optional[str] = Field(None, min_length=1)
    code: Optional[str] = None
    category: Optional[HMOCategory] = None
    description: Optional[str] = None
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None


class HMODepositRequest(BaseModel):
    """Money paid by an HMO into its retainership pool."""
    amount: Decimal = Field(..., gt=0)
    description: Optional[str] = None
    reference: Optional[str] = None


# ============================================================================
# RESPONSE SCHEMAS
# ============================================================================

class HMOResponse(BaseModel):
    id: UUID
    name: str
    code: Optional[str] = None
    category: HMOCategory
    description: Optional[str] = None
    active: bool
    contact_person: Optional[str] = None
    contact_phone: Optional[str] = None
    contact_email: Optional[str] = None
    created_at: datetime


class HMOListResponse(BaseModel):
    hmos: List[HMOResponse]
    total: int


class HMOTransactionResponse(BaseModel):
    id: UUID
    hmo_id: UUID
    amount: Decimal
    description: Optional[str] = None
    reference: Optional[str] = None
    recorded_by: Optional[UUID] = None
    date: datetime


class HMOBalanceResponse(BaseModel):
    """Retainership pool: deposits received less HMO portions already settled."""
    hmo_id: UUID
    hmo_name: str
    total_deposits: Decimal
    total_used: Decimal
    balance: Decimal


class StatementEntryType(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class HMOStatementEntry(BaseModel):
    date: datetime
    type: StatementEntryType
    amount: Decimal
    description: Optional[str] = None
    reference: Optional[str] = None
    patient_name: Optional[str] = None


class HMOStatementResponse(BaseModel):
    """Pool deposits (credits) and HMO portions of settled lines (debits), newest first."""
    hmo_id: UUID
    hmo_name: str
    entries: List[HMOStatementEntry]
    total_deposits: Decimal
    total_charges: Decimal
    balance: Decimal
