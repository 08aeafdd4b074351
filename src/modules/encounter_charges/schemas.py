# src/modules/encounter_charges/schemas.py
"""Encounter charge ledger Pydantic schemas."""

from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field, model_validator
from uuid import UUID
from enum import Enum

from src.modules.charges.schemas import ChargeCategory


class EncounterChargeStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


# ============================================================================
# REQUEST SCHEMAS
# ============================================================================

class AdhocItemRequest(BaseModel):
    """A billable item that is not in the charge master."""
    name: str = Field(..., min_length=1)
    category: ChargeCategory
    unit_price: Decimal = Field(..., ge=0)


class EncounterChargeCreateRequest(BaseModel):
    """Add a line to an encounter, priced either from the charge master or ad hoc."""
    encounter_id: UUID
    patient_id: UUID
    charge_id: Optional[UUID] = None
    adhoc: Optional[AdhocItemRequest] = None
    quantity: int = Field(default=1, ge=1)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def check_item_source(self):
        if (self.charge_id is None) == (self.adhoc is None):
            raise ValueError("Provide exactly one of charge_id or adhoc")
        return self


class EncounterChargeUpdateRequest(BaseModel):
    quantity: Optional[int] = Field(default=None, ge=1)
    notes: Optional[str] = None


# ============================================================================
# RESPONSE SCHEMAS
# ============================================================================

class EncounterChargeResponse(BaseModel):
    """One ledger line."""
    id: UUID
    encounter_id: UUID
    patient_id: UUID
    charge_id: Optional[UUID] = None
    item_name: str
    item_type: ChargeCategory
    quantity: int
    unit_price: Decimal
    total_amount: Decimal
    patient_portion: Optional[Decimal] = None
    hmo_portion: Optional[Decimal] = None
    status: EncounterChargeStatus
    receipt_id: Optional[UUID] = None
    added_by: Optional[UUID] = None
    notes: Optional[str] = None
    created_at: datetime


class EncounterChargeListResponse(BaseModel):
    charges: List[EncounterChargeResponse]
    total: int
    total_amount: Decimal
    pending_amount: Decimal


class EncounterChargeActionResponse(BaseModel):
    success: bool
    message: str
