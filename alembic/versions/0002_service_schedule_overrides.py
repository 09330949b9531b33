"""service_schedule_overrides

Revision ID: 0002
Revises: 0001
Create Date: 2025-11-18 14:37:05.402915

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0002'
down_revision: Union[str, Sequence[str], None] = '0001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table('service_schedule_overrides',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('service_id', sa.Uuid(), nullable=False),
        sa.Column('override_date', sa.Date(), nullable=False),
        sa.Column('is_available', sa.Boolean(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=True),
        sa.Column('end_time', sa.Time(), nullable=True),
        sa.Column('reason', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['service_id'], ['services.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('service_id', 'override_date', name='uq_service_schedule_overrides_service_date')
    )
    op.create_index(op.f('ix_service_schedule_overrides_service_id'), 'service_schedule_overrides', ['service_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_service_schedule_overrides_service_id'), table_name='service_schedule_overrides')
    op.drop_table('service_schedule_overrides')
