"""Team model for tenant accounts."""
from decimal import Decimal

from sqlalchemy import Column, Date, Enum as SQLEnum, ForeignKey, Integer, Numeric, String, Uuid
from sqlalchemy.orm import relationship
import enum

from credit_ledger.models.base import Base


class SubscriptionStatus(enum.Enum):
    """Recurring subscription status as seen by the gateway."""

    NONE = "none"
    PENDING_PAYMENT = "pending_payment"
    ACTIVE = "active"


class Team(Base):
    """
    Tenant account owning a credit balance and a subscription.

    extra_credits is a running balance that only confirmed purchases
    increase. Per-period consumption lives in PeriodConsumption.
    """

    __tablename__ = "teams"

    name = Column(String, nullable=False)
    billing_email = Column(String, nullable=False, index=True)
    tax_id = Column(String, nullable=True)  # CPF/CNPJ required by the gateway

    gateway_customer_id = Column(String, nullable=True, unique=True, index=True)
    gateway_subscription_id = Column(String, nullable=True, index=True)
    subscription_status = Column(
        SQLEnum(SubscriptionStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=SubscriptionStatus.NONE,
    )
    next_due_date = Column(Date, nullable=True)

    plan_id = Column(Uuid(as_uuid=True), ForeignKey("plans.id"), nullable=True, index=True)
    plan_credit_limit = Column(Integer, nullable=False, default=0)
    extra_credits = Column(Integer, nullable=False, default=0)
    base_price = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))

    agent_id = Column(String, nullable=True, index=True)  # Usage-reporting channel on the agent platform

    # Relationships
    plan = relationship("Plan", back_populates="teams")
    transactions = relationship("Transaction", back_populates="team")
    consumptions = relationship("PeriodConsumption", back_populates="team")

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Team(id={self.id}, name={self.name}, "
            f"subscription_status={self.subscription_status.value}, extra_credits={self.extra_credits})>"
        )
