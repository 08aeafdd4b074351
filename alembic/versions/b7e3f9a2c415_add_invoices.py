"""add invoices

Revision ID: b7e3f9a2c415
Revises: a1c4e2b7d901
Create Date: 2026-10-19 15:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = 'b7e3f9a2c415'
down_revision: Union[str, None] = 'a1c4e2b7d901'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


invoicestatus = sa.Enum('PENDING', 'PAID', 'CANCELLED', 'REVERSED', name='invoicestatus')
# Created by the previous revision
paymentmethod = postgresql.ENUM(
    'CASH', 'CARD', 'INSURANCE', 'DEPOSIT', 'RETAINERSHIP', name='paymentmethod', create_type=False
)
chargecategory = postgresql.ENUM(
    'CONSULTATION', 'LAB', 'RADIOLOGY', 'DRUGS', 'NURSING', 'OTHER', name='chargecategory', create_type=False
)


def upgrade() -> None:
    op.create_table(
        'invoices',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('patient_id', sa.Uuid(), nullable=False),
        sa.Column('encounter_id', sa.Uuid(), nullable=True),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('status', invoicestatus, nullable=False),
        sa.Column('payment_method', paymentmethod, nullable=False),
        sa.Column('fee_type', chargecategory, nullable=False),
        sa.Column('department', sa.String(100), nullable=False),
        sa.Column('generated_by', sa.Uuid(), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reversal_reason', sa.Text(), nullable=True),
        sa.Column('reversed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('reversed_by', sa.Uuid(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('total_amount >= 0', name='ck_invoice_total_non_negative'),
        sa.ForeignKeyConstraint(['patient_id'], ['patients.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['encounter_id'], ['encounters.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['generated_by'], ['users.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['reversed_by'], ['users.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_invoices_patient', 'invoices', ['patient_id'])
    op.create_index('idx_invoices_status', 'invoices', ['status'])

    op.add_column('receipts', sa.Column('invoice_id', sa.Uuid(), nullable=True))
    op.create_foreign_key(
        'fk_receipts_invoice_id', 'receipts', 'invoices', ['invoice_id'], ['id'], ondelete='SET NULL'
    )
    op.create_index('idx_receipts_invoice', 'receipts', ['invoice_id'])


def downgrade() -> None:
    op.drop_index('idx_receipts_invoice', table_name='receipts')
    op.drop_constraint('fk_receipts_invoice_id', 'receipts', type_='foreignkey')
    op.drop_column('receipts', 'invoice_id')
    op.drop_table('invoices')
    invoicestatus.drop(op.get_bind(), checkfirst=True)
