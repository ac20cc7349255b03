"""Plan model for subscription products."""
from sqlalchemy import Column, String, Integer, Boolean, Numeric
from sqlalchemy.orm import relationship

from credit_ledger.models.base import Base


class Plan(Base):
    """
    Subscription plan.

    The credit limit is copied onto the team when the plan is chosen or
    renewed so balance math never needs a join.
    """

    __tablename__ = "plans"

    name = Column(String, nullable=False)
    monthly_price = Column(Numeric(12, 2), nullable=False)
    credit_limit = Column(Integer, nullable=False)
    user_limit = Column(Integer, nullable=True)  # NULL means unlimited
    active = Column(Boolean, nullable=False, default=True, index=True)

    # Relationships
    teams = relationship("Team", back_populates="plan")

    def __repr__(self) -> str:
        """String representation."""
        return f"<Plan(id={self.id}, name={self.name}, credit_limit={self.credit_limit})>"
