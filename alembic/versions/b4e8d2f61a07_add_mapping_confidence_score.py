"""Add catalog match confidence to procedure mappings

Revision ID: b4e8d2f61a07
Revises: 7c1e4a9d2b30
Create Date: 2026-10-20 09:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'b4e8d2f61a07'
down_revision: Union[str, Sequence[str], None] = '7c1e4a9d2b30'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.add_column(
        'procedure_mappings',
        sa.Column(
            'confidence_score',
            sa.Numeric(precision=4, scale=3),
            nullable=True,
            comment='Catalog match confidence; 1.000 for an exact code match',
        ),
    )
    op.create_check_constraint(
        'ck_procedure_mappings_confidence_score_range',
        'procedure_mappings',
        'confidence_score IS NULL OR (confidence_score >= 0 AND confidence_score <= 1)',
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_constraint('ck_procedure_mappings_confidence_score_range', 'procedure_mappings', type_='check')
    op.drop_column('procedure_mappings', 'confidence_score')
