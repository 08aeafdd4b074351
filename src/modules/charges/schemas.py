# src/modules/charges/schemas.py
"""Charge master Pydantic schemas."""

from typing import Optional, List
from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel, Field
from uuid import UUID
from enum import Enum


class ChargeCategory(str, Enum):
    CONSULTATION = "consultation"
    LAB = "lab"
    RADIOLOGY = "radiology"
    DRUGS = "drugs"
    NURSING = "nursing"
    OTHER = "other"


# ============================================================================
# REQUEST SCHEMAS
# ============================================================================

class ChargeCreateRequest(BaseModel):
    """Request to add an item to the charge master."""
    name: str = Field(..., min_length=1)
    type: ChargeCategory
    base_price: Decimal = Field(..., ge=0)
    standard_fee: Decimal = Field(default=Decimal("0"), ge=0)
    retainership_fee: Decimal = Field(default=Decimal("0"), ge=0)
    nhia_fee: Decimal = Field(default=Decimal("0"), ge=0)
    kschma_fee: Decimal = Field(default=Decimal("0"), ge=0)
    department: str = Field(..., min_length=1)
    description: Optional[str] = None
    code: Optional[str] = None


class ChargeUpdateRequest(BaseModel):
    """Request to update a charge master item. Only provided fields change."""
    name: Optional[str] = None
    base_price: Optional[Decimal] = Field(default=None, ge=0)
    standard_fee: Optional[Decimal] = Field(default=None, ge=0)
    retainership_fee: Optional[Decimal] = Field(default=None, ge=0)
    nhia_fee: Optional[Decimal] = Field(default=None, ge=0)
    kschma_fee: Optional[Decimal] = Field(default=None, ge=0)
    department: Optional[str] = None
    description: Optional[str] = None
    active: Optional[bool] = None


# ============================================================================
# RESPONSE SCHEMAS
# ============================================================================

class ChargeResponse(BaseModel):
    """Charge master item."""
    id: UUID
    name: str
    type: ChargeCategory
    base_price: Decimal
    standard_fee: Decimal
    retainership_fee: Decimal
    nhia_fee: Decimal
    kschma_fee: Decimal
    department: str
    description: Optional[str] = None
    code: Optional[str] = None
    active: bool
    created_at: datetime


class ChargeListResponse(BaseModel):
    charges: List[ChargeResponse]
    total: int


class ChargeActionResponse(BaseModel):
    success: bool
    message: str
