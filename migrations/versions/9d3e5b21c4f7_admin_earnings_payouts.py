"""Admin earnings payouts

Revision ID: 9d3e5b21c4f7
Revises: 4a1c9e07d2b1
Create Date: 2026-10-26 14:03:17.502911

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '9d3e5b21c4f7'
down_revision = '4a1c9e07d2b1'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'admin_withdrawals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('admin_id', sa.Integer(), nullable=False),
        sa.Column('admin_name', sa.String(length=80), nullable=True),
        sa.Column('admin_email', sa.String(length=120), nullable=True),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('account_holder_name', sa.String(length=120), nullable=False),
        sa.Column('account_number', sa.String(length=34), nullable=False),
        sa.Column('ifsc_code', sa.String(length=11), nullable=False),
        sa.Column('bank_name', sa.String(length=120), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['admin_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    with op.batch_alter_table('admin_withdrawals', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_admin_withdrawals_admin_id'), ['admin_id'], unique=False)

    with op.batch_alter_table('transactions', schema=None) as batch_op:
        batch_op.add_column(sa.Column('admin_payout_id', sa.Integer(), nullable=True))
        batch_op.create_foreign_key(
            'fk_transactions_admin_payout_id', 'admin_withdrawals', ['admin_payout_id'], ['id']
        )


def downgrade():
    with op.batch_alter_table('transactions', schema=None) as batch_op:
        batch_op.drop_constraint('fk_transactions_admin_payout_id', type_='foreignkey')
        batch_op.drop_column('admin_payout_id')

    with op.batch_alter_table('admin_withdrawals', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_admin_withdrawals_admin_id'))

    op.drop_table('admin_withdrawals')
