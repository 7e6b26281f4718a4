"""Create referral network tables.

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261019_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create members, subscriptions, compensation_levels and network_commissions."""

    # Sponsor forest
    op.create_table(
        'members',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('referral_code', sa.String(20), nullable=True),
        sa.Column('sponsor_id', sa.String(36), nullable=True, comment='Direct sponsor; NULL for roots'),
        sa.Column('phase', sa.Integer(), nullable=False, server_default='0', comment='Compensation plan tier'),
        sa.Column('allow_team_messages', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['sponsor_id'], ['members.id'], ondelete='SET NULL'),
        sa.CheckConstraint('sponsor_id IS NULL OR sponsor_id <> id', name='check_member_not_own_sponsor'),
        sa.CheckConstraint('phase >= 0', name='check_member_phase_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('referral_code'),
    )
    op.create_index('ix_members_email', 'members', ['email'])
    op.create_index('ix_members_referral_code', 'members', ['referral_code'])
    op.create_index('ix_members_sponsor_id', 'members', ['sponsor_id'])

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.String(64), nullable=False),
        sa.Column('user_id', sa.String(36), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='unpaid', comment='active | past_due | unpaid | canceled'),
        sa.Column('gateway', sa.String(20), nullable=True),
        sa.Column('current_period_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancel_at_period_end', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('default_payment_method_id', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['user_id'], ['members.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
    )
    op.create_index('ix_subscriptions_user_id', 'subscriptions', ['user_id'])
    op.create_index('ix_subscriptions_status', 'subscriptions', ['status'])

    # Admin-managed plan
    op.create_table(
        'compensation_levels',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('max_members', sa.Integer(), nullable=False, server_default='0', comment='0 = uncapped'),
        sa.Column('commission_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.CheckConstraint('level >= 1', name='check_compensation_level_positive'),
        sa.CheckConstraint('max_members >= 0', name='check_compensation_max_members_non_negative'),
        sa.CheckConstraint('commission_amount_cents >= 0', name='check_compensation_amount_non_negative'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_compensation_levels_level', 'compensation_levels', ['level'], unique=True)
    op.create_index('ix_compensation_levels_is_active', 'compensation_levels', ['is_active'])

    # Append-only commission ledger
    op.create_table(
        'network_commissions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.String(36), nullable=False, comment='Beneficiary'),
        sa.Column('member_id', sa.String(36), nullable=False, comment='Source member'),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='USD'),
        sa.Column('commission_type', sa.String(50), nullable=False, server_default='subscription_payment'),
        sa.Column('subscription_id', sa.String(64), nullable=True),
        sa.Column('activation_key', sa.String(128), nullable=False, comment='Subscription activation event'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('now()')),
        sa.ForeignKeyConstraint(['user_id'], ['members.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['member_id'], ['members.id'], ondelete='CASCADE'),
        sa.CheckConstraint('amount_cents >= 0', name='check_network_commission_amount_non_negative'),
        sa.CheckConstraint('level >= 1', name='check_network_commission_level'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'member_id', 'activation_key', name='uq_network_commission_activation'),
    )
    op.create_index('ix_network_commissions_user_id', 'network_commissions', ['user_id'])
    op.create_index('ix_network_commissions_member_id', 'network_commissions', ['member_id'])
    op.create_index(
        'idx_network_commissions_member_type_created',
        'network_commissions',
        ['member_id', 'commission_type', 'created_at'],
    )


def downgrade() -> None:
    """Drop referral network tables."""
    op.drop_index('idx_network_commissions_member_type_created', table_name='network_commissions')
    op.drop_index('ix_network_commissions_member_id', table_name='network_commissions')
    op.drop_index('ix_network_commissions_user_id', table_name='network_commissions')
    op.drop_table('network_commissions')

    op.drop_index('ix_compensation_levels_is_active', table_name='compensation_levels')
    op.drop_index('ix_compensation_levels_level', table_name='compensation_levels')
    op.drop_table('compensation_levels')

    op.drop_index('ix_subscriptions_status', table_name='subscriptions')
    op.drop_index('ix_subscriptions_user_id', table_name='subscriptions')
    op.drop_table('subscriptions')

    op.drop_index('ix_members_sponsor_id', table_name='members')
    op.drop_index('ix_members_referral_code', table_name='members')
    op.drop_index('ix_members_email', table_name='members')
    op.drop_table('members')
