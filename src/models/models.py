# src/models/models.py

import uuid
import enum
from datetime import datetime, timezone

from sqlalchemy import (
    JSON, Boolean, CheckConstraint, Column, ForeignKey,
    Index, Integer, Numeric, String, Text, DateTime, Uuid,
    Enum as SAEnum, UniqueConstraint,
    func,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# ENUMS
# ============================================================================

class UserRole(enum.Enum):
    ADMIN = "admin"
    CASHIER = "cashier"
    DOCTOR = "doctor"
    NURSE = "nurse"
    PHARMACIST = "pharmacist"
    LAB_SCIENTIST = "lab_scientist"
    RADIOLOGIST = "radiologist"


class ProviderTier(enum.Enum):
    STANDARD = "Standard"
    RETAINERSHIP = "Retainership"
    NHIA = "NHIA"
    KSCHMA = "KSCHMA"


INSURED_TIERS = (ProviderTier.RETAINERSHIP, ProviderTier.NHIA, ProviderTier.KSCHMA)


class ChargeCategory(enum.Enum):
    CONSULTATION = "consultation"
    LAB = "lab"
    RADIOLOGY = "radiology"
    DRUGS = "drugs"
    NURSING = "nursing"
    OTHER = "other"


class EncounterChargeStatus(enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class PaymentMethod(enum.Enum):
    CASH = "cash"
    CARD = "card"
    INSURANCE = "insurance"
    DEPOSIT = "deposit"
    RETAINERSHIP = "retainership"


class ReceiptStatus(enum.Enum):
    ACTIVE = "active"
    REVERSED = "reversed"


class InvoiceStatus(enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"
    REVERSED = "reversed"


class ClaimStatus(enum.Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"
    PAID = "paid"


class HMOCategory(enum.Enum):
    PRIVATE = "Private"
    NHIA = "NHIA"
    STATE_SCHEME = "State Scheme"
    RETAINERSHIP = "Retainership"
    OTHER = "Other"


class EncounterType(enum.Enum):
    OUTPATIENT = "Outpatient"
    INPATIENT = "Inpatient"
    EMERGENCY = "Emergency"
    FOLLOW_UP = "Follow-up"
    CONSULTATION = "Consultation"
    EXTERNAL_INVESTIGATION = "External Investigation"


class EncounterStatus(enum.Enum):
    REGISTERED = "registered"
    PAYMENT_PENDING = "payment_pending"
    IN_NURSING = "in_nursing"
    WITH_DOCTOR = "with_doctor"
    AWAITING_SERVICES = "awaiting_services"
    IN_PHARMACY = "in_pharmacy"
    CHECKOUT = "checkout"
    IN_WARD = "in_ward"
    COMPLETED = "completed"
    ADMITTED = "admitted"
    DISCHARGED = "discharged"
    CANCELLED = "cancelled"


# Encounters in any of these stages are no longer active
CLOSED_ENCOUNTER_STATUSES = (
    EncounterStatus.COMPLETED,
    EncounterStatus.DISCHARGED,
    EncounterStatus.CANCELLED,
)


# ============================================================================
# IDENTITY & DIRECTORY MODELS
# ============================================================================

class User(Base):
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    role = Column(SAEnum(UserRole), nullable=False, default=UserRole.CASHIER)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now())

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role.value})>"


class HMO(Base):
    __tablename__ = "hmos"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    name = Column(String(200), unique=True, nullable=False)
    code = Column(String(50), nullable=True)
    category = Column(SAEnum(HMOCategory), nullable=False, default=HMOCategory.PRIVATE)
    description = Column(Text, nullable=True)
    active = Column(Boolean, default=True, nullable=False)
    contact_person = Column(String(200), nullable=True)
    contact_phone = Column(String(20), nullable=True)
    contact_email = Column(String(255), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now())

    def __repr__(self):
        return f"<HMO(id={self.id}, name={self.name})>"


class HMOTransaction(Base):
    """Deposits paid by an HMO into its retainership pool."""
    __tablename__ = "hmo_transactions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    hmo_id = Column(Uuid, ForeignKey("hmos.id", ondelete="CASCADE"), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(Text, nullable=True)
    reference = Column(String(100), nullable=True)
    recorded_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    date = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now())

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_hmo_transaction_amount_positive"),
        Index("idx_hmo_transactions_hmo", "hmo_id"),
    )


class Patient(Base):
    __tablename__ = "patients"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    mrn = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(200), nullable=False)
    provider = Column(SAEnum(ProviderTier), nullable=False, default=ProviderTier.STANDARD)
    hmo_id = Column(Uuid, ForeignKey("hmos.id", ondelete="SET NULL"), nullable=True)
    insurance_number = Column(String(100), nullable=True)
    deposit_balance = Column(Numeric(12, 2), nullable=False, default=0)
    low_deposit_threshold = Column(Numeric(12, 2), nullable=False, default=5000)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now(), onupdate=_utcnow)

    __table_args__ = (
        CheckConstraint("deposit_balance >= 0", name="ck_patient_deposit_non_negative"),
    )

    def __repr__(self):
        return f"<Patient(id={self.id}, mrn={self.mrn}, provider={self.provider.value})>"


class Encounter(Base):
    __tablename__ = "encounters"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    patient_id = Column(Uuid, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    encounter_type = Column(SAEnum(EncounterType), nullable=False, default=EncounterType.OUTPATIENT)
    encounter_status = Column(SAEnum(EncounterStatus), nullable=False, default=EncounterStatus.REGISTERED)
    payment_validated = Column(Boolean, default=False, nullable=False)
    receipt_number = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now(), onupdate=_utcnow)

    __table_args__ = (
        Index("idx_encounters_patient", "patient_id"),
        Index("idx_encounters_created", "created_at"),
    )

    def __repr__(self):
        return f"<Encounter(id={self.id}, status={self.encounter_status.value})>"


# ============================================================================
# BILLING MODELS
# ============================================================================

class Charge(Base):
    """Master price list item with one fee per provider tier."""
    __tablename__ = "charges"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    name = Column(String(255), nullable=False)
    type = Column(SAEnum(ChargeCategory), nullable=False)
    standard_fee = Column(Numeric(12, 2), nullable=False, default=0)
    retainership_fee = Column(Numeric(12, 2), nullable=False, default=0)
    nhia_fee = Column(Numeric(12, 2), nullable=False, default=0)
    kschma_fee = Column(Numeric(12, 2), nullable=False, default=0)
    base_price = Column(Numeric(12, 2), nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    department = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    code = Column(String(50), unique=True, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now(), onupdate=_utcnow)

    def __repr__(self):
        return f"<Charge(id={self.id}, name={self.name}, type={self.type.value})>"


class EncounterCharge(Base):
    """One billable line within an encounter."""
    __tablename__ = "encounter_charges"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    encounter_id = Column(Uuid, ForeignKey("encounters.id", ondelete="CASCADE"), nullable=False)
    patient_id = Column(Uuid, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    charge_id = Column(Uuid, ForeignKey("charges.id", ondelete="SET NULL"), nullable=True)
    # Snapshot of the priced item; survives master-data edits
    item_name = Column(String(255), nullable=False)
    item_type = Column(SAEnum(ChargeCategory), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(12, 2), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    # Nullable only for legacy rows written before the split was stored
    patient_portion = Column(Numeric(12, 2), nullable=True)
    hmo_portion = Column(Numeric(12, 2), nullable=True)
    status = Column(SAEnum(EncounterChargeStatus), nullable=False, default=EncounterChargeStatus.PENDING)
    receipt_id = Column(Uuid, ForeignKey("receipts.id", ondelete="SET NULL"), nullable=True)
    added_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now(), onupdate=_utcnow)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_encounter_charge_quantity_positive"),
        Index("idx_encounter_charges_encounter", "encounter_id"),
        Index("idx_encounter_charges_patient", "patient_id"),
        Index("idx_encounter_charges_status", "status"),
        Index("idx_encounter_charges_created", "created_at"),
    )

    def __repr__(self):
        return f"<EncounterCharge(id={self.id}, item={self.item_name}, status={self.status.value})>"


class Invoice(Base):
    """A bill raised outside the encounter ledger, e.g. a registration or card fee."""
    __tablename__ = "invoices"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    patient_id = Column(Uuid, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    encounter_id = Column(Uuid, ForeignKey("encounters.id", ondelete="SET NULL"), nullable=True)
    items = Column(JSON, nullable=False, default=list)  # [{"description", "cost"}]
    total_amount = Column(Numeric(12, 2), nullable=False)
    status = Column(SAEnum(InvoiceStatus), nullable=False, default=InvoiceStatus.PENDING)
    payment_method = Column(SAEnum(PaymentMethod), nullable=False, default=PaymentMethod.CASH)
    fee_type = Column(SAEnum(ChargeCategory), nullable=False, default=ChargeCategory.OTHER)
    department = Column(String(100), nullable=False, default="General")
    generated_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)
    reversal_reason = Column(Text, nullable=True)
    reversed_at = Column(DateTime(timezone=True), nullable=True)
    reversed_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now(), onupdate=_utcnow)

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_invoice_total_non_negative"),
        Index("idx_invoices_patient", "patient_id"),
        Index("idx_invoices_status", "status"),
    )

    def __repr__(self):
        return f"<Invoice(id={self.id}, total={self.total_amount}, status={self.status.value})>"


class Receipt(Base):
    __tablename__ = "receipts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    receipt_number = Column(String(50), unique=True, nullable=False)
    patient_id = Column(Uuid, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    encounter_id = Column(Uuid, ForeignKey("encounters.id", ondelete="SET NULL"), nullable=True)
    invoice_id = Column(Uuid, ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True)
    charge_ids = Column(JSON, nullable=False, default=list)  # settled line ids at payment time
    amount_paid = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(SAEnum(PaymentMethod), nullable=False, default=PaymentMethod.CASH)
    cashier_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    payment_date = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now())
    status = Column(SAEnum(ReceiptStatus), nullable=False, default=ReceiptStatus.ACTIVE)
    validated = Column(Boolean, default=False, nullable=False)
    reversal_reason = Column(Text, nullable=True)
    reversed_at = Column(DateTime(timezone=True), nullable=True)
    reversed_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now())

    validations = relationship(
        "ReceiptValidation",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="ReceiptValidation.timestamp",
    )

    __table_args__ = (
        Index("idx_receipts_encounter", "encounter_id"),
        Index("idx_receipts_patient", "patient_id"),
        Index("idx_receipts_invoice", "invoice_id"),
    )

    def __repr__(self):
        return f"<Receipt(id={self.id}, number={self.receipt_number}, status={self.status.value})>"


class ReceiptValidation(Base):
    """A department's confirmation that it has seen a paid receipt."""
    __tablename__ = "receipt_validations"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    receipt_id = Column(Uuid, ForeignKey("receipts.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    department = Column(String(100), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now())

    __table_args__ = (
        UniqueConstraint("receipt_id", "user_id", "department", name="uq_receipt_validation"),
    )


class Claim(Base):
    __tablename__ = "claims"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    claim_number = Column(String(50), unique=True, nullable=False)
    patient_id = Column(Uuid, ForeignKey("patients.id", ondelete="CASCADE"), nullable=False)
    hmo_id = Column(Uuid, ForeignKey("hmos.id", ondelete="RESTRICT"), nullable=False)
    encounter_id = Column(Uuid, ForeignKey("encounters.id", ondelete="CASCADE"), nullable=False)
    total_claim_amount = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(SAEnum(ClaimStatus), nullable=False, default=ClaimStatus.PENDING)
    submitted_date = Column(DateTime(timezone=True), nullable=True)
    approved_date = Column(DateTime(timezone=True), nullable=True)
    paid_date = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, server_default=func.now(), onupdate=_utcnow)

    items = relationship(
        "ClaimItem",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="ClaimItem.position",
    )

    __table_args__ = (
        UniqueConstraint("encounter_id", name="uq_claim_encounter"),
        Index("idx_claims_hmo", "hmo_id"),
        Index("idx_claims_status", "status"),
    )

    def __repr__(self):
        return f"<Claim(id={self.id}, number={self.claim_number}, status={self.status.value})>"


class ClaimItem(Base):
    """Immutable copy of a ledger line taken when the claim was generated."""
    __tablename__ = "claim_items"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, nullable=False)
    claim_id = Column(Uuid, ForeignKey("claims.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    encounter_charge_id = Column(Uuid, ForeignKey("encounter_charges.id", ondelete="SET NULL"), nullable=True)
    charge_id = Column(Uuid, ForeignKey("charges.id", ondelete="SET NULL"), nullable=True)
    charge_type = Column(SAEnum(ChargeCategory), nullable=False)
    description = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False, default=1)
    unit_price = Column(Numeric(12, 2), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    patient_portion = Column(Numeric(12, 2), nullable=False, default=0)
    hmo_portion = Column(Numeric(12, 2), nullable=False)


class NumberSequence(Base):
    """Named counters for document numbering (e.g. claim-2025)."""
    __tablename__ = "number_sequences"

    name = Column(String(50), primary_key=True)
    value = Column(Integer, nullable=False, default=0)
