"""Transaction model for ledger entries."""
from sqlalchemy import Column, DateTime, Enum as SQLEnum, ForeignKey, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship
import enum

from credit_ledger.models.base import Base, JSONType


class TransactionKind(enum.Enum):
    """Kind of monetary event."""

    CREDIT_PURCHASE = "credit_purchase"
    SUBSCRIPTION_PAYMENT = "subscription_payment"


class TransactionStatus(enum.Enum):
    """Transaction status. PAID and FAILED are terminal."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class Transaction(Base):
    """
    Ledger entry for one monetary event.

    The id doubles as the correlation key sent to the gateway
    ("credits_<id>"). For credit purchases, extra_metadata["credits"] is the
    only record of how many credits the payment grants.
    """

    __tablename__ = "transactions"

    team_id = Column(Uuid(as_uuid=True), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(SQLEnum(TransactionKind, values_callable=lambda e: [m.value for m in e]), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    status = Column(
        SQLEnum(TransactionStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=TransactionStatus.PENDING,
        index=True,
    )
    description = Column(Text, nullable=True)
    extra_metadata = Column("metadata", JSONType, nullable=False, default=dict)

    gateway_id = Column(String, nullable=True, index=True)  # Gateway charge id, set when paid
    payment_method = Column(String, nullable=True)  # Gateway billingType, set when paid
    invoice_url = Column(String, nullable=True)
    paid_at = Column(DateTime, nullable=True)

    # Relationships
    team = relationship("Team", back_populates="transactions")

    @property
    def credits(self) -> int:
        """Credits granted when this purchase is paid."""
        return int((self.extra_metadata or {}).get("credits", 0))

    def __repr__(self) -> str:
        """String representation."""
        return f"<Transaction(id={self.id}, kind={self.kind.value}, status={self.status.value}, amount={self.amount})>"
