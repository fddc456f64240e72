"""Create deal collections table

Revision ID: 20261017_0900
Revises:
Create Date: 2026-10-17 09:00:00.000000

This migration creates collection tracking for booked deals:
- deal_collections: one receivables record per deal, pending until it is
  either collected or clawed back
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261017_0900'
down_revision = None
branch_labels = None
depends_on = None


collection_status = sa.Enum('PENDING', 'COLLECTED', 'CLAWED_BACK', name='collectionstatus')


def table_exists(table_name: str) -> bool:
    """Check if a table exists."""
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    return table_name in inspector.get_table_names()


def upgrade() -> None:
    # ===========================================
    # DEAL COLLECTIONS TABLE
    # ===========================================
    if table_exists('deal_collections'):
        return

    op.create_table('deal_collections',
        sa.Column('id', sa.Uuid(as_uuid=True), nullable=False),

        # Deal
        sa.Column('deal_id', sa.String(100), nullable=False),
        sa.Column('employee_id', sa.String(100), nullable=False),
        sa.Column('customer_name', sa.String(255), nullable=True),
        sa.Column('project_id', sa.String(100), nullable=True),

        # Booking
        sa.Column('booking_month', sa.Date, nullable=False),
        sa.Column('deal_value', sa.Numeric(15, 2), nullable=False),
        sa.Column('booking_payout_pct', sa.Numeric(5, 2), nullable=False, comment='Share disbursed at booking'),
        sa.Column('due_date', sa.Date, nullable=False, comment='End of booking month + clawback period'),

        # Lifecycle
        sa.Column('status', collection_status, nullable=False),
        sa.Column('collection_date', sa.Date, nullable=True),
        sa.Column('collection_amount', sa.Numeric(15, 2), nullable=True),
        sa.Column('clawback_amount', sa.Numeric(15, 2), nullable=False, server_default='0'),
        sa.Column('clawback_triggered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),

        # Audit
        sa.Column('created_by', sa.String(100), nullable=True),
        sa.Column('updated_by', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),

        sa.PrimaryKeyConstraint('id', name='pk_deal_collections'),
        sa.UniqueConstraint('deal_id', name='uq_deal_collections_deal_id'),
        sa.CheckConstraint('clawback_amount >= 0', name='ck_deal_collections_clawback_non_negative'),
        sa.CheckConstraint('deal_value >= 0', name='ck_deal_collections_deal_value_non_negative'),
        sa.CheckConstraint(
            'NOT (collection_date IS NOT NULL AND clawback_triggered_at IS NOT NULL)',
            name='ck_deal_collections_collected_xor_clawed_back',
        ),
    )
    op.create_index('ix_deal_collections_employee_id', 'deal_collections', ['employee_id'])
    op.create_index('ix_deal_collections_status_due_date', 'deal_collections', ['status', 'due_date'])


def downgrade() -> None:
    op.drop_index('ix_deal_collections_status_due_date', table_name='deal_collections')
    op.drop_index('ix_deal_collections_employee_id', table_name='deal_collections')
    op.drop_table('deal_collections')
    collection_status.drop(op.get_bind(), checkfirst=True)
