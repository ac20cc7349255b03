"""Per-period credit consumption model."""
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from credit_ledger.models.base import Base, JSONType


class PeriodConsumption(Base):
    """
    Credits consumed by a team in one calendar period (YYYY-MM).

    Always written through an upsert on (team_id, period). The metadata
    carries job bookkeeping such as the last low-balance alert date.
    """

    __tablename__ = "period_consumptions"
    __table_args__ = (
        UniqueConstraint("team_id", "period", name="uq_period_consumptions_team_period"),
    )

    team_id = Column(Uuid(as_uuid=True), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    period = Column(String(7), nullable=False)
    credits_used = Column(Integer, nullable=False, default=0)
    consumed_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    extra_metadata = Column("metadata", JSONType, nullable=False, default=dict)

    # Relationships
    team = relationship("Team", back_populates="consumptions")

    def __repr__(self) -> str:
        """String representation."""
        return f"<PeriodConsumption(team_id={self.team_id}, period={self.period}, credits_used={self.credits_used})>"
