"""initial owners, appointments and leads

Revision ID: 001
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)

    if not inspector.has_table('owners'):
        op.create_table('owners',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('external_key', sa.String(length=255), nullable=True),
        sa.Column('intakeq_key', sa.String(length=255), nullable=True),
        sa.Column('intakeq_base_url', sa.String(length=512), nullable=True),
        sa.Column('vtiger_url', sa.String(length=512), nullable=True),
        sa.Column('vtiger_username', sa.String(length=255), nullable=True),
        sa.Column('vtiger_access_key', sa.String(length=255), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('external_key')
        )
        op.create_index(op.f('ix_owners_id'), 'owners', ['id'], unique=False)
        op.create_index(op.f('ix_owners_name'), 'owners', ['name'], unique=False)

    if not inspector.has_table('appointments'):
        op.create_table('appointments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('source_id', sa.String(length=64), nullable=False),
        sa.Column('contact_name', sa.String(length=255), nullable=True),
        sa.Column('contact_email', sa.String(length=255), nullable=True),
        sa.Column('contact_phone', sa.String(length=64), nullable=True),
        sa.Column('contact_date_of_birth', sa.String(length=64), nullable=True),
        sa.Column('contact_source_id', sa.String(length=64), nullable=True),
        sa.Column('status', sa.String(length=100), nullable=True),
        sa.Column('start_date', sa.BigInteger(), nullable=True),
        sa.Column('end_date', sa.BigInteger(), nullable=True),
        sa.Column('start_date_iso', sa.String(length=64), nullable=True),
        sa.Column('end_date_iso', sa.String(length=64), nullable=True),
        sa.Column('start_date_local', sa.String(length=64), nullable=True),
        sa.Column('end_date_local', sa.String(length=64), nullable=True),
        sa.Column('start_date_local_formatted', sa.String(length=128), nullable=True),
        sa.Column('duration', sa.Integer(), nullable=True),
        sa.Column('service_name', sa.String(length=255), nullable=True),
        sa.Column('service_id', sa.String(length=64), nullable=True),
        sa.Column('location_name', sa.String(length=255), nullable=True),
        sa.Column('location_id', sa.String(length=64), nullable=True),
        sa.Column('practitioner_name', sa.String(length=255), nullable=True),
        sa.Column('practitioner_email', sa.String(length=255), nullable=True),
        sa.Column('practitioner_id', sa.String(length=64), nullable=True),
        sa.Column('price', sa.Float(), nullable=True),
        sa.Column('telehealth_info', sa.JSON(), nullable=True),
        sa.Column('intake_id', sa.String(length=64), nullable=True),
        sa.Column('date_created', sa.BigInteger(), nullable=True),
        sa.Column('created_by', sa.String(length=255), nullable=True),
        sa.Column('booked_by_client', sa.Boolean(), nullable=True),
        sa.Column('last_modified', sa.BigInteger(), nullable=True),
        sa.Column('attendance_confirmation_response', sa.String(length=100), nullable=True),
        sa.Column('reminder_type', sa.String(length=100), nullable=True),
        sa.Column('place_of_service', sa.String(length=255), nullable=True),
        sa.Column('full_cancellation_reason', sa.Text(), nullable=True),
        sa.Column('cancellation_reason_note', sa.Text(), nullable=True),
        sa.Column('cancellation_date', sa.BigInteger(), nullable=True),
        sa.Column('invoice_id', sa.String(length=64), nullable=True),
        sa.Column('invoice_number', sa.String(length=64), nullable=True),
        sa.Column('custom_fields', sa.JSON(), nullable=True),
        sa.Column('additional_clients', sa.JSON(), nullable=True),
        sa.Column('raw_data', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['owner_id'], ['owners.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('owner_id', 'source_id', name='uq_appointments_owner_source')
        )
        op.create_index(op.f('ix_appointments_id'), 'appointments', ['id'], unique=False)
        op.create_index(op.f('ix_appointments_owner_id'), 'appointments', ['owner_id'], unique=False)
        op.create_index(op.f('ix_appointments_contact_email'), 'appointments', ['contact_email'], unique=False)

    if not inspector.has_table('leads'):
        op.create_table('leads',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=False),
        sa.Column('source_id', sa.String(length=64), nullable=False),
        sa.Column('lead_no', sa.String(length=64), nullable=True),
        sa.Column('salutation', sa.String(length=32), nullable=True),
        sa.Column('first_name', sa.String(length=255), nullable=True),
        sa.Column('last_name', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('secondary_email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('mobile', sa.String(length=64), nullable=True),
        sa.Column('company', sa.String(length=255), nullable=True),
        sa.Column('designation', sa.String(length=255), nullable=True),
        sa.Column('lead_source', sa.String(length=100), nullable=True),
        sa.Column('lead_status', sa.String(length=100), nullable=True),
        sa.Column('assigned_user_id', sa.String(length=64), nullable=True),
        sa.Column('city', sa.String(length=255), nullable=True),
        sa.Column('state', sa.String(length=255), nullable=True),
        sa.Column('country', sa.String(length=255), nullable=True),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('stage', sa.String(length=100), nullable=True),
        sa.Column('processed_flag', sa.String(length=16), nullable=True),
        sa.Column('matched_count', sa.String(length=16), nullable=True),
        sa.Column('summary_html', sa.Text(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('source_created_at', sa.DateTime(), nullable=True),
        sa.Column('source_modified_at', sa.DateTime(), nullable=True),
        sa.Column('raw_data', sa.JSON(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['owner_id'], ['owners.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('owner_id', 'source_id', name='uq_leads_owner_source')
        )
        op.create_index(op.f('ix_leads_id'), 'leads', ['id'], unique=False)
        op.create_index(op.f('ix_leads_owner_id'), 'leads', ['owner_id'], unique=False)
        op.create_index(op.f('ix_leads_email'), 'leads', ['email'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('leads')
    op.drop_table('appointments')
    op.drop_table('owners')
