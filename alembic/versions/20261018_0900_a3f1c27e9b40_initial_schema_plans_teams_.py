"""Initial schema: plans, teams, transactions, period consumptions

Revision ID: a3f1c27e9b40
Revises: 
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = 'a3f1c27e9b40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the ledger tables."""
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    op.execute("CREATE TYPE subscriptionstatus AS ENUM ('none', 'pending_payment', 'active')")
    op.execute("CREATE TYPE transactionkind AS ENUM ('credit_purchase', 'subscription_payment')")
    op.execute("CREATE TYPE transactionstatus AS ENUM ('pending', 'paid', 'failed')")

    # 1. Plans
    op.create_table(
        'plans',
        sa.Column('id', sa.UUID(), server_default=sa.text('uuid_generate_v4()'), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('monthly_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('credit_limit', sa.Integer(), nullable=False),
        sa.Column('user_limit', sa.Integer(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default='true'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_plans_active'), 'plans', ['active'])

    # 2. Teams (depends on plans)
    op.create_table(
        'teams',
        sa.Column('id', sa.UUID(), server_default=sa.text('uuid_generate_v4()'), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('billing_email', sa.String(), nullable=False),
        sa.Column('tax_id', sa.String(), nullable=True),
        sa.Column('gateway_customer_id', sa.String(), nullable=True),
        sa.Column('gateway_subscription_id', sa.String(), nullable=True),
        sa.Column(
            'subscription_status',
            postgresql.ENUM('none', 'pending_payment', 'active', name='subscriptionstatus', create_type=False),
            nullable=False,
            server_default='none',
        ),
        sa.Column('next_due_date', sa.Date(), nullable=True),
        sa.Column('plan_id', sa.UUID(), nullable=True),
        sa.Column('plan_credit_limit', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('extra_credits', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('base_price', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('agent_id', sa.String(), nullable=True),
        sa.ForeignKeyConstraint(['plan_id'], ['plans.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_teams_billing_email'), 'teams', ['billing_email'])
    op.create_index(op.f('ix_teams_gateway_customer_id'), 'teams', ['gateway_customer_id'], unique=True)
    op.create_index(op.f('ix_teams_gateway_subscription_id'), 'teams', ['gateway_subscription_id'])
    op.create_index(op.f('ix_teams_plan_id'), 'teams', ['plan_id'])
    op.create_index(op.f('ix_teams_agent_id'), 'teams', ['agent_id'])

    # 3. Transactions (depends on teams)
    op.create_table(
        'transactions',
        sa.Column('id', sa.UUID(), server_default=sa.text('uuid_generate_v4()'), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('team_id', sa.UUID(), nullable=False),
        sa.Column(
            'kind',
            postgresql.ENUM('credit_purchase', 'subscription_payment', name='transactionkind', create_type=False),
            nullable=False,
        ),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column(
            'status',
            postgresql.ENUM('pending', 'paid', 'failed', name='transactionstatus', create_type=False),
            nullable=False,
            server_default='pending',
        ),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('metadata', postgresql.JSONB(), nullable=False, server_default='{}'),
        sa.Column('gateway_id', sa.String(), nullable=True),
        sa.Column('payment_method', sa.String(), nullable=True),
        sa.Column('invoice_url', sa.String(), nullable=True),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['team_id'], ['teams.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_transactions_team_id'), 'transactions', ['team_id'])
    op.create_index(op.f('ix_transactions_status'), 'transactions', ['status'])
    op.create_index(op.f('ix_transactions_gateway_id'), 'transactions', ['gateway_id'])

    # 4. Period consumptions (depends on teams)
    op.create_table(
        'period_consumptions',
        sa.Column('id', sa.UUID(), server_default=sa.text('uuid_generate_v4()'), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('team_id', sa.UUID(), nullable=False),
        sa.Column('period', sa.String(length=7), nullable=False),
        sa.Column('credits_used', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('consumed_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('metadata', postgresql.JSONB(), nullable=False, server_default='{}'),
        sa.ForeignKeyConstraint(['team_id'], ['teams.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('team_id', 'period', name='uq_period_consumptions_team_period')
    )
    op.create_index(op.f('ix_period_consumptions_team_id'), 'period_consumptions', ['team_id'])


def downgrade() -> None:
    """Drop the ledger tables."""
    op.drop_table('period_consumptions')
    op.drop_table('transactions')
    op.drop_table('teams')
    op.drop_table('plans')

    op.execute('DROP TYPE IF EXISTS transactionstatus')
    op.execute('DROP TYPE IF EXISTS transactionkind')
    op.execute('DROP TYPE IF EXISTS subscriptionstatus')
