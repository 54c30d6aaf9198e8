"""Create partner network tables"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4c1a9e2f7b10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=120), nullable=False),
        sa.Column('first_name', sa.String(length=80), nullable=True),
        sa.Column('last_name', sa.String(length=80), nullable=True),
        sa.Column('company', sa.String(length=150), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('role', sa.String(length=20), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('partner_id', sa.String(length=20), nullable=True),
        sa.Column('referral_code', sa.String(length=20), nullable=True),
        sa.Column('parent_partner_id', sa.Integer(), nullable=True),
        sa.Column('partner_level', sa.Integer(), server_default=sa.text('1'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['parent_partner_id'], ['users.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('email'),
        sa.UniqueConstraint('partner_id'),
        sa.UniqueConstraint('referral_code'),
        sa.CheckConstraint('partner_level >= 1 AND partner_level <= 3', name='chk_partner_level_range'),
    )
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_parent_partner_id', 'users', ['parent_partner_id'])
    op.create_index('idx_user_referral_code', 'users', ['referral_code'])
    op.create_index('idx_user_partner_id', 'users', ['partner_id'])

    op.create_table(
        'partner_hierarchy',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('child_id', sa.Integer(), nullable=False),
        sa.Column('parent_id', sa.Integer(), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['child_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['parent_id'], ['users.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('child_id', 'level', name='uq_hierarchy_child_level'),
        sa.UniqueConstraint('child_id', 'parent_id', name='uq_hierarchy_child_parent'),
        sa.CheckConstraint('child_id <> parent_id', name='chk_hierarchy_no_self_ancestry'),
        sa.CheckConstraint('level >= 1', name='chk_hierarchy_level_positive'),
    )
    op.create_index('ix_partner_hierarchy_child_id', 'partner_hierarchy', ['child_id'])
    op.create_index('ix_partner_hierarchy_parent_id', 'partner_hierarchy', ['parent_id'])
    op.create_index('idx_hierarchy_parent_level', 'partner_hierarchy', ['parent_id', 'level'])

    op.create_table(
        'referrals',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('referrer_id', sa.Integer(), nullable=False),
        sa.Column('business_name', sa.String(length=200), nullable=False),
        sa.Column('business_email', sa.String(length=120), nullable=False),
        sa.Column('business_phone', sa.String(length=32), nullable=True),
        sa.Column('business_type', sa.String(length=100), nullable=True),
        sa.Column('monthly_volume', sa.String(length=50), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('estimated_commission', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('actual_commission', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['referrer_id'], ['users.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_referrals_referrer_id', 'referrals', ['referrer_id'])
    op.create_index('ix_referrals_status', 'referrals', ['status'])
    op.create_index('idx_referral_referrer_status', 'referrals', ['referrer_id', 'status'])

    op.create_table(
        'commission_payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('referral_id', sa.Integer(), nullable=False),
        sa.Column('recipient_id', sa.Integer(), nullable=False),
        sa.Column('level', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('percentage', sa.Numeric(precision=5, scale=4), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('transfer_reference', sa.String(length=120), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['referral_id'], ['referrals.id']),
        sa.ForeignKeyConstraint(['recipient_id'], ['users.id']),
        sa.UniqueConstraint('referral_id', 'level', name='uq_commission_referral_level'),
        sa.CheckConstraint('level >= 1 AND level <= 3', name='chk_commission_level_range'),
    )
    op.create_index('ix_commission_payments_referral_id', 'commission_payments', ['referral_id'])
    op.create_index('ix_commission_payments_recipient_id', 'commission_payments', ['recipient_id'])
    op.create_index('ix_commission_payments_transfer_reference', 'commission_payments', ['transfer_reference'])
    op.create_index('idx_commission_recipient_status', 'commission_payments', ['recipient_id', 'status'])

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.String(length=64), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(length=50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['actor_id'], ['users.id'], ondelete='SET NULL'),
    )
    op.create_index('ix_audit_logs_actor_id', 'audit_logs', ['actor_id'])
    op.create_index('idx_audit_entity', 'audit_logs', ['entity_type', 'entity_id'])


def downgrade():
    op.drop_table('audit_logs')
    op.drop_table('commission_payments')
    op.drop_table('referrals')
    op.drop_table('partner_hierarchy')
    op.drop_table('users')
