"""Create insurance price-table ingestion schema

Revision ID: 7c1e4a9d2b30
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '7c1e4a9d2b30'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('insurance_providers',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('clinic_id', sa.UUID(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_insurance_providers_clinic_id', 'insurance_providers', ['clinic_id'])

    op.create_table('procedure_base_table',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('clinic_id', sa.UUID(), nullable=True, comment='NULL for the global catalog'),
        sa.Column('code', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('is_periciable', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('adults_only', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_procedure_base_table_clinic_id', 'procedure_base_table', ['clinic_id'])
    op.create_index('ix_procedure_base_table_code', 'procedure_base_table', ['code'])

    op.create_table('insurance_provider_documents',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('insurance_provider_id', sa.UUID(), nullable=False),
        sa.Column('clinic_id', sa.UUID(), nullable=False),
        sa.Column('file_name', sa.String(), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=False),
        sa.Column('mime_type', sa.String(), nullable=False),
        sa.Column('file_path', sa.String(), nullable=False, comment='Raw file store handle'),
        sa.Column('processed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('processing_status', sa.String(), nullable=False, server_default='PROCESSING'),
        sa.Column('processing_progress', sa.Integer(), nullable=False, server_default='0', comment='0-100'),
        sa.Column('processing_stage', sa.String(), nullable=False, server_default='UPLOADING'),
        sa.Column('extracted_data', postgresql.JSONB(astext_type=sa.Text()), nullable=True, comment='Extracted procedure set or error payload'),
        sa.Column('created_by', sa.String(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('processed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.CheckConstraint('processing_progress BETWEEN 0 AND 100', name='ck_insurance_provider_documents_progress'),
        sa.ForeignKeyConstraint(['insurance_provider_id'], ['insurance_providers.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_insurance_provider_documents_clinic_id', 'insurance_provider_documents', ['clinic_id'])
    op.create_index(
        'ix_insurance_provider_documents_provider_created',
        'insurance_provider_documents',
        ['insurance_provider_id', 'created_at'],
    )

    op.create_table('procedure_mappings',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('document_id', sa.UUID(), nullable=False),
        sa.Column('extracted_procedure_code', sa.String(), nullable=False),
        sa.Column('extracted_description', sa.Text(), nullable=True),
        sa.Column('extracted_value', sa.Numeric(12, 2), nullable=True),
        sa.Column('extracted_is_periciable', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('extracted_adults_only', sa.Boolean(), nullable=True, comment='NULL on rows created before classification existed'),
        sa.Column('ai_periciable_confidence', sa.Numeric(4, 3), nullable=True),
        sa.Column('ai_adults_only_confidence', sa.Numeric(4, 3), nullable=True),
        sa.Column('ai_reasoning', sa.Text(), nullable=True),
        sa.Column('mapped_procedure_base_id', sa.UUID(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='PENDING'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('mapped_provider_procedure_id', sa.UUID(), nullable=True),
        sa.Column('reviewed_by', sa.String(), nullable=True),
        sa.Column('reviewed_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.CheckConstraint("status IN ('PENDING', 'APPROVED', 'REJECTED')", name='ck_procedure_mappings_status'),
        sa.ForeignKeyConstraint(['document_id'], ['insurance_provider_documents.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['mapped_procedure_base_id'], ['procedure_base_table.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_id', 'extracted_procedure_code', name='uq_procedure_mappings_document_code')
    )

    op.create_table('insurance_provider_procedures',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('insurance_provider_id', sa.UUID(), nullable=False),
        sa.Column('procedure_base_id', sa.UUID(), nullable=True),
        sa.Column('provider_code', sa.String(), nullable=False),
        sa.Column('provider_description', sa.Text(), nullable=True),
        sa.Column('is_periciable', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('max_value', sa.Numeric(12, 2), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('source_mapping_id', sa.UUID(), nullable=True, comment='Mapping this row was approved from; at most one row per mapping'),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.ForeignKeyConstraint(['insurance_provider_id'], ['insurance_providers.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['procedure_base_id'], ['procedure_base_table.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['source_mapping_id'], ['procedure_mappings.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('source_mapping_id', name='uq_insurance_provider_procedures_source_mapping')
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('insurance_provider_procedures')
    op.drop_table('procedure_mappings')
    op.drop_index('ix_insurance_provider_documents_provider_created', table_name='insurance_provider_documents')
    op.drop_index('ix_insurance_provider_documents_clinic_id', table_name='insurance_provider_documents')
    op.drop_table('insurance_provider_documents')
    op.drop_index('ix_procedure_base_table_code', table_name='procedure_base_table')
    op.drop_index('ix_procedure_base_table_clinic_id', table_name='procedure_base_table')
    op.drop_table('procedure_base_table')
    op.drop_index('ix_insurance_providers_clinic_id', table_name='insurance_providers')
    op.drop_table('insurance_providers')
