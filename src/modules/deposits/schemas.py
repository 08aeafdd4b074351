# src/modules/deposits/schemas.py

from typing import Optional
from decimal import Decimal
from pydantic import BaseModel, Field
from uuid import UUID


class DepositRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    reference: Optional[str] = None


class DepositBalanceResponse(BaseModel):
    patient_id: UUID
    patient_name: str
    deposit_balance: Decimal
    low_deposit_threshold: Decimal
    is_low: bool
