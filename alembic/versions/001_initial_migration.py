"""Initial migration

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create price_alerts table
    op.create_table('price_alerts',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('cryptocurrency', sa.String(length=64), nullable=False),
        sa.Column('alert_type', sa.String(length=20), nullable=False),
        sa.Column('condition', sa.String(length=10), nullable=False),
        sa.Column('target_price', sa.Float(), nullable=True),
        sa.Column('percentage_change', sa.Float(), nullable=True),
        sa.Column('volume_threshold', sa.Float(), nullable=True),
        sa.Column('creation_price', sa.Float(), nullable=True),
        sa.Column('email_notification', sa.Boolean(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('triggered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_price_alerts_user_id'), 'price_alerts', ['user_id'], unique=False)
    op.create_index(op.f('ix_price_alerts_cryptocurrency'), 'price_alerts', ['cryptocurrency'], unique=False)
    op.create_index(op.f('ix_price_alerts_is_active'), 'price_alerts', ['is_active'], unique=False)

    # Create user_profiles table
    op.create_table('user_profiles',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )


def downgrade() -> None:
    op.drop_table('user_profiles')
    op.drop_index(op.f('ix_price_alerts_is_active'), table_name='price_alerts')
    op.drop_index(op.f('ix_price_alerts_cryptocurrency'), table_name='price_alerts')
    op.drop_index(op.f('ix_price_alerts_user_id'), table_name='price_alerts')
    op.drop_table('price_alerts')
