"""create billing schema

Revision ID: a1c4e2b7d901
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1c4e2b7d901'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


userrole = sa.Enum('ADMIN', 'CASHIER', 'DOCTOR', 'NURSE', 'PHARMACIST', 'LAB_SCIENTIST', 'RADIOLOGIST', name='userrole')
providertier = sa.Enum('STANDARD', 'RETAINERSHIP', 'NHIA', 'KSCHMA', name='providertier')
chargecategory = sa.Enum('CONSULTATION', 'LAB', 'RADIOLOGY', 'DRUGS', 'NURSING', 'OTHER', name='chargecategory')
encounterchargestatus = sa.Enum('PENDING', 'PAID', 'CANCELLED', name='encounterchargestatus')
paymentmethod = sa.Enum('CASH', 'CARD', 'INSURANCE', 'DEPOSIT', 'RETAINERSHIP', name='paymentmethod')
receiptstatus = sa.Enum('ACTIVE', 'REVERSED', name='receiptstatus')
claimstatus = sa.Enum('PENDING', 'SUBMITTED', 'APPROVED', 'REJECTED', 'PAID', name='claimstatus')
hmocategory = sa.Enum('PRIVATE', 'NHIA', 'STATE_SCHEME', 'RETAINERSHIP', 'OTHER', name='hmocategory')
encountertype = sa.Enum(
    'OUTPATIENT', 'INPATIENT', 'EMERGENCY', 'FOLLOW_UP', 'CONSULTATION', 'EXTERNAL_INVESTIGATION',
    name='encountertype'
)
encounterstatus = sa.Enum(
    'REGISTERED', 'PAYMENT_PENDING', 'IN_NURSING', 'WITH_DOCTOR', 'AWAITING_SERVICES', 'IN_PHARMACY',
    'CHECKOUT', 'IN_WARD', 'COMPLETED', 'ADMITTED', 'DISCHARGED', 'CANCELLED',
    name='encounterstatus'
)


def _created_at():
    return sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False)


def _updated_at():
    return sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False)


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('role', userrole, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'hmos',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('code', sa.String(50), nullable=True),
        sa.Column('category', hmocategory, nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('contact_person', sa.String(200), nullable=True),
        sa.Column('contact_phone', sa.String(20), nullable=True),
        sa.Column('contact_email', sa.String(255), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )

    op.create_table(
        'hmo_transactions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('hmo_id', sa.Uuid(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('reference', sa.String(100), nullable=True),
        sa.Column('recorded_by', sa.Uuid(), nullable=True),
        sa.Column('date', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('amount > 0', name='ck_hmo_transaction_amount_positive'),
        sa.ForeignKeyConstraint(['hmo_id'], ['hmos.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['recorded_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_hmo_transactions_hmo', 'hmo_transactions', ['hmo_id'])

    op.create_table(
        'patients',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('mrn', sa.String(50), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('provider', providertier, nullable=False),
        sa.Column('hmo_id', sa.Uuid(), nullable=True),
        sa.Column('insurance_number', sa.String(100), nullable=True),
        sa.Column('deposit_balance', sa.Numeric(12, 2), nullable=False),
        sa.Column('low_deposit_threshold', sa.Numeric(12, 2), nullable=False),
        _created_at(),
        _updated_at(),
        sa.CheckConstraint('deposit_balance >= 0', name='ck_patient_deposit_non_negative'),
        sa.ForeignKeyConstraint(['hmo_id'], ['hmos.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_patients_mrn', 'patients', ['mrn'], unique=True)

    op.create_table(
        'encounters',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('patient_id', sa.Uuid(), nullable=False),
        sa.Column('encounter_type', encountertype, nullable=False),
        sa.Column('encounter_status', encounterstatus, nullable=False),
        sa.Column('payment_validated', sa.Boolean(), nullable=False),
        sa.Column('receipt_number', sa.String(50), nullable=True),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_encounters_patient', 'encounters', ['patient_id'])
    op.create_index('idx_encounters_created', 'encounters', ['created_at'])

    op.create_table(
        'charges',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('type', chargecategory, nullable=False),
        sa.Column('standard_fee', sa.Numeric(12, 2), nullable=False),
        sa.Column('retainership_fee', sa.Numeric(12, 2), nullable=False),
        sa.Column('nhia_fee', sa.Numeric(12, 2), nullable=False),
        sa.Column('kschma_fee', sa.Numeric(12, 2), nullable=False),
        sa.Column('base_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('department', sa.String(100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('code', sa.String(50), nullable=True),
        _created_at(),
        _updated_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
    )

    op.create_table(
        'receipts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('receipt_number', sa.String(50), nullable=False),
        sa.Column('patient_id', sa.Uuid(), nullable=False),
        sa.Column('encounter_id', sa.Uuid(), nullable=True),
        sa.Column('charge_ids', sa.JSON(), nullable=False),
        sa.Column('amount_paid', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_method', paymentmethod, nullable=False),
        sa.Column('cashier_id', sa.Uuid(), nullable=True),
        sa.Column('payment_date', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('status', receiptstatus, nullable=False),
        sa.Column('validated', sa.Boolean(), nullable=False),
        sa.Column('reversal_reason', sa.Text(), nullable=True),
        sa.Column('reversed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reversed_by', sa.Uuid(), nullable=True),
        _created_at(),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['encounter_id'], ['encounters.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['cashier_id'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['reversed_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('receipt_number'),
    )
    op.create_index('idx_receipts_encounter', 'receipts', ['encounter_id'])
    op.create_index('idx_receipts_patient', 'receipts', ['patient_id'])

    op.create_table(
        'receipt_validations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('receipt_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('department', sa.String(100), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['receipt_id'], ['receipts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('receipt_id', 'user_id', 'department', name='uq_receipt_validation'),
    )

    op.create_table(
        'encounter_charges',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('encounter_id', sa.Uuid(), nullable=False),
        sa.Column('patient_id', sa.Uuid(), nullable=False),
        sa.Column('charge_id', sa.Uuid(), nullable=True),
        sa.Column('item_name', sa.String(255), nullable=False),
        sa.Column('item_type', chargecategory, nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('patient_portion', sa.Numeric(12, 2), nullable=True),
        sa.Column('hmo_portion', sa.Numeric(12, 2), nullable=True),
        sa.Column('status', encounterchargestatus, nullable=False),
        sa.Column('receipt_id', sa.Uuid(), nullable=True),
        sa.Column('added_by', sa.Uuid(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.CheckConstraint('quantity > 0', name='ck_encounter_charge_quantity_positive'),
        sa.ForeignKeyConstraint(['encounter_id'], ['encounters.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['charge_id'], ['charges.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['receipt_id'], ['receipts.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['added_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_encounter_charges_encounter', 'encounter_charges', ['encounter_id'])
    op.create_index('idx_encounter_charges_patient', 'encounter_charges', ['patient_id'])
    op.create_index('idx_encounter_charges_status', 'encounter_charges', ['status'])
    op.create_index('idx_encounter_charges_created', 'encounter_charges', ['created_at'])

    op.create_table(
        'claims',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('claim_number', sa.String(50), nullable=False),
        sa.Column('patient_id', sa.Uuid(), nullable=False),
        sa.Column('hmo_id', sa.Uuid(), nullable=False),
        sa.Column('encounter_id', sa.Uuid(), nullable=False),
        sa.Column('total_claim_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', claimstatus, nullable=False),
        sa.Column('submitted_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('paid_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        _created_at(),
        _updated_at(),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['hmo_id'], ['hmos.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['encounter_id'], ['encounters.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('claim_number'),
        sa.UniqueConstraint('encounter_id', name='uq_claim_encounter'),
    )
    op.create_index('idx_claims_hmo', 'claims', ['hmo_id'])
    op.create_index('idx_claims_status', 'claims', ['status'])

    op.create_table(
        'claim_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('claim_id', sa.Uuid(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('encounter_charge_id', sa.Uuid(), nullable=True),
        sa.Column('charge_id', sa.Uuid(), nullable=True),
        sa.Column('charge_type', chargecategory, nullable=False),
        sa.Column('description', sa.String(255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('patient_portion', sa.Numeric(12, 2), nullable=False),
        sa.Column('hmo_portion', sa.Numeric(12, 2), nullable=False),
        sa.ForeignKeyConstraint(['claim_id'], ['claims.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['encounter_charge_id'], ['encounter_charges.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['charge_id'], ['charges.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'number_sequences',
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('value', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('name'),
    )


def downgrade() -> None:
    op.drop_table('number_sequences')
    op.drop_table('claim_items')
    op.drop_table('claims')
    op.drop_table('encounter_charges')
    op.drop_table('receipt_validations')
    op.drop_table('receipts')
    op.drop_table('charges')
    op.drop_table('encounters')
    op.drop_table('patients')
    op.drop_table('hmo_transactions')
    op.drop_table('hmos')
    op.drop_table('users')

    # Drop the enum types
    for enum_type in (
        encounterstatus, encountertype, hmocategory, claimstatus, receiptstatus,
        paymentmethod, encounterchargestatus, chargecategory, providertier, userrole,
    ):
        enum_type.drop(op.get_bind(), checkfirst=True)
