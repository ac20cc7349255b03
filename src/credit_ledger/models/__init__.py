"""SQLAlchemy ORM models for the credit ledger."""
# Import all models here to ensure they are registered with Alembic

from credit_ledger.models.base import Base
from credit_ledger.models.plan import Plan
from credit_ledger.models.team import Team, SubscriptionStatus
from credit_ledger.models.transaction import Transaction, TransactionKind, TransactionStatus
from credit_ledger.models.period_consumption import PeriodConsumption

__all__ = [
    "Base",
    "Plan",
    "Team",
    "SubscriptionStatus",
    "Transaction",
    "TransactionKind",
    "TransactionStatus",
    "PeriodConsumption",
]
