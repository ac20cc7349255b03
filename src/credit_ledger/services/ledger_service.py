"""Ledger store: data access for teams, transactions and period consumption."""
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import structlog
from sqlalchemy import select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from credit_ledger.models.period_consumption import PeriodConsumption
from credit_ledger.models.plan import Plan
from credit_ledger.models.team import SubscriptionStatus, Team
from credit_ledger.models.transaction import Transaction, TransactionKind, TransactionStatus

logger = structlog.get_logger(__name__)


class LedgerService:
    """
    Single source of truth for what has been paid and what has been credited.

    Balance changes go through settle_credit_purchase only. Status moves away
    from PENDING with a compare-and-set, and the credit increment is computed
    by the database in the same transaction, so concurrent or repeated
    confirmations never grant twice or lose an increment.
    """

    def __init__(self, db: AsyncSession):
        """Initialize ledger service with database session."""
        self.db = db

    # Teams and plans

    async def get_team(self, team_id: UUID, for_update: bool = False) -> Optional[Team]:
        """
        Load a team, optionally locking its row.

        Args:
            team_id: Team UUID
            for_update: Lock the row until the current transaction ends

        Returns:
            Team if found, None otherwise
        """
        query = select(Team).where(Team.id == team_id).execution_options(populate_existing=True)
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def get_team_by_customer_id(self, customer_id: str, for_update: bool = False) -> Optional[Team]:
        """Resolve a team from its gateway customer id."""
        if not customer_id:
            return None
        query = (
            select(Team)
            .where(Team.gateway_customer_id == customer_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def list_team_ids(self) -> list[UUID]:
        """Ids of every team, oldest first."""
        result = await self.db.execute(select(Team.id).order_by(Team.created_at))
        return list(result.scalars().all())

    async def list_team_ids_with_agent(self) -> list[UUID]:
        """Ids of teams that have a usage-reporting channel configured."""
        result = await self.db.execute(
            select(Team.id).where(Team.agent_id.is_not(None)).order_by(Team.created_at)
        )
        return list(result.scalars().all())

    async def get_plan(self, plan_id: UUID | None) -> Optional[Plan]:
        if plan_id is None:
            return None
        result = await self.db.execute(select(Plan).where(Plan.id == plan_id))
        return result.scalar_one_or_none()

    async def set_gateway_customer(self, team: Team, customer_id: str) -> Team:
        """Cache the gateway customer id on the team."""
        team.gateway_customer_id = customer_id
        await self.db.flush()
        logger.info("gateway_customer_linked", team_id=str(team.id), customer_id=customer_id)
        return team

    async def link_subscription(
        self,
        team: Team,
        subscription_id: str,
        plan: Plan,
        status: SubscriptionStatus = SubscriptionStatus.PENDING_PAYMENT,
    ) -> Team:
        """
        Record the subscription created on the gateway.

        The base price is copied onto the team so the billing cycle never
        needs a join. The plan credit limit is left alone: it only changes
        when the gateway confirms the payment.
        """
        team.gateway_subscription_id = subscription_id
        team.subscription_status = status
        team.plan_id = plan.id
        team.base_price = plan.monthly_price
        await self.db.flush()
        return team

    # Transactions

    async def open_transaction(
        self,
        team_id: UUID,
        kind: TransactionKind,
        amount: Decimal,
        description: str,
        metadata: dict[str, Any] | None = None,
    ) -> Transaction:
        """
        Insert a pending transaction.

        Args:
            team_id: Owning team
            kind: Credit purchase or subscription payment
            amount: Declared monetary amount
            description: Human-readable description
            metadata: Arbitrary metadata (credit purchases carry "credits")

        Returns:
            Pending transaction with its id assigned
        """
        transaction = Transaction(
            team_id=team_id,
            kind=kind,
            amount=amount,
            status=TransactionStatus.PENDING,
            description=description,
            extra_metadata=metadata or {},
        )
        self.db.add(transaction)
        await self.db.flush()
        await self.db.refresh(transaction)

        logger.info(
            "transaction_opened",
            transaction_id=str(transaction.id),
            team_id=str(team_id),
            kind=kind.value,
            amount=str(amount),
        )
        return transaction

    async def get_transaction(self, transaction_id: UUID, for_update: bool = False) -> Optional[Transaction]:
        query = (
            select(Transaction)
            .where(Transaction.id == transaction_id)
            .execution_options(populate_existing=True)
        )
        if for_update:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def find_transaction_by_gateway_id(
        self, team_id: UUID, gateway_id: str, kind: TransactionKind
    ) -> Optional[Transaction]:
        """Transaction of the given kind already recorded for a gateway charge, if any."""
        result = await self.db.execute(
            select(Transaction).where(
                Transaction.team_id == team_id,
                Transaction.gateway_id == gateway_id,
                Transaction.kind == kind,
            )
        )
        return result.scalars().first()

    async def attach_charge(self, transaction: Transaction, gateway_id: str, invoice_url: str | None) -> Transaction:
        """Remember which gateway charge backs a pending transaction."""
        transaction.gateway_id = gateway_id
        transaction.invoice_url = invoice_url
        await self.db.flush()
        return transaction

    async def mark_transaction_failed(self, transaction_id: UUID, reason: str) -> bool:
        """
        Move a pending transaction to FAILED.

        Returns:
            True if the transaction was pending and is now failed
        """
        result = await self.db.execute(
            update(Transaction)
            .where(Transaction.id == transaction_id, Transaction.status == TransactionStatus.PENDING)
            .values(status=TransactionStatus.FAILED, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )
        failed = result.rowcount == 1
        logger.warning(
            "transaction_failed",
            transaction_id=str(transaction_id),
            reason=reason,
            transitioned=failed,
        )
        return failed

    async def settle_credit_purchase(
        self,
        transaction: Transaction,
        gateway_id: str,
        payment_method: str | None,
        paid_at: datetime,
    ) -> bool:
        """
        Mark a credit purchase paid and grant its credits, at most once.

        The status update only matches a PENDING row. When it matches, the
        team balance is incremented in SQL inside the same transaction.
        The caller commits.

        Args:
            transaction: Transaction loaded (and locked) by the caller
            gateway_id: Gateway charge id
            payment_method: Gateway billing type
            paid_at: When the gateway received the money

        Returns:
            True if credits were granted, False if another delivery already settled it
        """
        credits = transaction.credits
        result = await self.db.execute(
            update(Transaction)
            .where(Transaction.id == transaction.id, Transaction.status == TransactionStatus.PENDING)
            .values(
                status=TransactionStatus.PAID,
                gateway_id=gateway_id,
                payment_method=payment_method,
                paid_at=paid_at,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            return False

        await self.db.execute(
            update(Team)
            .where(Team.id == transaction.team_id)
            .values(extra_credits=Team.extra_credits + credits, updated_at=datetime.utcnow())
            .execution_options(synchronize_session=False)
        )

        logger.info(
            "credits_granted",
            transaction_id=str(transaction.id),
            team_id=str(transaction.team_id),
            credits=credits,
        )
        return True

    async def record_subscription_payment(
        self,
        team_id: UUID,
        amount: Decimal,
        description: str,
        gateway_id: str,
        payment_method: str | None,
        invoice_url: str | None,
        paid_at: datetime,
        metadata: dict[str, Any] | None = None,
    ) -> Transaction:
        """Append an already-paid subscription renewal to the ledger."""
        transaction = Transaction(
            team_id=team_id,
            kind=TransactionKind.SUBSCRIPTION_PAYMENT,
            amount=amount,
            status=TransactionStatus.PAID,
            description=description,
            extra_metadata=metadata or {},
            gateway_id=gateway_id,
            payment_method=payment_method,
            invoice_url=invoice_url,
            paid_at=paid_at,
        )
        self.db.add(transaction)
        await self.db.flush()
        return transaction

    # Period consumption

    async def get_period_consumption(self, team_id: UUID, period: str) -> Optional[PeriodConsumption]:
        result = await self.db.execute(
            select(PeriodConsumption)
            .where(PeriodConsumption.team_id == team_id, PeriodConsumption.period == period)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def upsert_period_consumption(
        self,
        team_id: UUID,
        period: str,
        credits_used: int,
        metadata: dict[str, Any],
    ) -> None:
        """
        Insert or overwrite the consumption row for (team, period).

        Uses the dialect's native INSERT ... ON CONFLICT so concurrent
        writers can never create two rows for the same period.
        """
        table = PeriodConsumption.__table__
        dialect = self.db.get_bind().dialect.name
        insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
        now = datetime.utcnow()

        stmt = insert(table).values(
            team_id=team_id,
            period=period,
            credits_used=credits_used,
            consumed_at=now,
            **{"metadata": metadata},
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.team_id, table.c.period],
            set_={
                "credits_used": stmt.excluded.credits_used,
                "consumed_at": stmt.excluded.consumed_at,
                "metadata": stmt.excluded["metadata"],
                "updated_at": now,
            },
        )
        await self.db.execute(stmt)
