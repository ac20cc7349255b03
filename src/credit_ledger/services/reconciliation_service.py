"""Reconciliation of gateway webhook events against the ledger."""
import enum
from datetime import datetime
from decimal import Decimal

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from credit_ledger.config import Settings, settings as default_settings
from credit_ledger.metrics import credits_granted_total, subscription_renewals_total, webhook_events_total
from credit_ledger.models.team import SubscriptionStatus
from credit_ledger.models.transaction import TransactionKind, TransactionStatus
from credit_ledger.schemas.gateway_event import (
    CreditPurchaseSettled,
    GatewayEvent,
    IgnoredEvent,
    SubscriptionOverdue,
    SubscriptionPaymentSettled,
    UnresolvableEvent,
)
from credit_ledger.services.ledger_service import LedgerService
from credit_ledger.utils.billing_dates import first_day_of_next_month, today_in

logger = structlog.get_logger(__name__)


class ReconciliationOutcome(str, enum.Enum):
    """What processing an event did to the ledger."""

    CREDITED = "credited"
    DUPLICATE = "duplicate"
    RENEWED = "renewed"
    MARKED_OVERDUE = "marked_overdue"
    ALREADY_PAID = "already_paid"
    UNRESOLVED = "unresolved"
    IGNORED = "ignored"


class ReconciliationService:
    """
    Applies gateway events to the ledger exactly once.

    Every outcome is an acknowledgment: duplicates, unresolvable references
    and ignored kinds all return normally so the gateway stops redelivering.
    Only unexpected errors propagate.
    """

    def __init__(self, db: AsyncSession, config: Settings | None = None):
        """Initialize reconciliation service with database session."""
        self.db = db
        self.config = config or default_settings
        self.ledger = LedgerService(db)

    async def process(self, event: GatewayEvent) -> ReconciliationOutcome:
        """
        Dispatch one classified event.

        Args:
            event: Tagged gateway event

        Returns:
            Outcome of the reconciliation
        """
        if isinstance(event, CreditPurchaseSettled):
            outcome = await self._settle_credit_purchase(event)
        elif isinstance(event, SubscriptionPaymentSettled):
            outcome = await self._renew_subscription(event)
        elif isinstance(event, SubscriptionOverdue):
            outcome = await self._mark_overdue(event)
        elif isinstance(event, UnresolvableEvent):
            logger.error(
                "webhook_event_unresolved",
                gateway_event=event.event,
                reason=event.reason,
                payment_id=event.payment.id if event.payment else None,
                external_reference=event.payment.external_reference if event.payment else None,
            )
            outcome = ReconciliationOutcome.UNRESOLVED
        else:
            logger.info("webhook_event_ignored", gateway_event=event.event)
            outcome = ReconciliationOutcome.IGNORED

        webhook_events_total.labels(event=event.event, outcome=outcome.value).inc()
        return outcome

    async def _settle_credit_purchase(self, event: CreditPurchaseSettled) -> ReconciliationOutcome:
        payment = event.payment
        transaction = await self.ledger.get_transaction(event.transaction_id, for_update=True)

        if not transaction or transaction.kind != TransactionKind.CREDIT_PURCHASE:
            logger.error(
                "credit_purchase_transaction_not_found",
                transaction_id=str(event.transaction_id),
                payment_id=payment.id,
            )
            await self.db.commit()
            return ReconciliationOutcome.UNRESOLVED

        if transaction.status == TransactionStatus.PAID:
            logger.info(
                "credit_purchase_already_settled",
                transaction_id=str(transaction.id),
                payment_id=payment.id,
            )
            await self.db.commit()
            return ReconciliationOutcome.DUPLICATE

        if transaction.status == TransactionStatus.FAILED:
            logger.error(
                "payment_for_failed_transaction",
                transaction_id=str(transaction.id),
                payment_id=payment.id,
            )
            await self.db.commit()
            return ReconciliationOutcome.UNRESOLVED

        granted = await self.ledger.settle_credit_purchase(
            transaction,
            gateway_id=payment.id,
            payment_method=payment.billing_type,
            paid_at=datetime.utcnow(),
        )
        await self.db.commit()

        if not granted:
            logger.info("credit_purchase_settled_concurrently", transaction_id=str(transaction.id))
            return ReconciliationOutcome.DUPLICATE

        credits_granted_total.inc(transaction.credits)
        logger.info(
            "credit_purchase_settled",
            transaction_id=str(transaction.id),
            team_id=str(transaction.team_id),
            credits=transaction.credits,
            payment_id=payment.id,
        )
        return ReconciliationOutcome.CREDITED

    async def _renew_subscription(self, event: SubscriptionPaymentSettled) -> ReconciliationOutcome:
        """
        Activate the subscription and append the renewal to the ledger.

        The team's stored plan is authoritative. The plan embedded in the
        correlation reference is only used when the team has none.
        """
        payment = event.payment
        team = await self.ledger.get_team_by_customer_id(event.customer_id, for_update=True)
        if not team:
            logger.error(
                "subscription_team_not_found",
                customer_id=event.customer_id,
                payment_id=payment.id,
            )
            await self.db.commit()
            return ReconciliationOutcome.UNRESOLVED

        existing = await self.ledger.find_transaction_by_gateway_id(
            team.id, payment.id, TransactionKind.SUBSCRIPTION_PAYMENT
        )
        if existing:
            logger.info("subscription_payment_already_recorded", team_id=str(team.id), payment_id=payment.id)
            await self.db.commit()
            return ReconciliationOutcome.DUPLICATE

        if event.reference_plan_id and team.plan_id and event.reference_plan_id != team.plan_id:
            logger.warning(
                "subscription_plan_mismatch",
                team_id=str(team.id),
                team_plan_id=str(team.plan_id),
                reference_plan_id=str(event.reference_plan_id),
            )

        plan = await self.ledger.get_plan(team.plan_id or event.reference_plan_id)
        if plan and team.plan_id is None:
            team.plan_id = plan.id

        team.subscription_status = SubscriptionStatus.ACTIVE
        team.next_due_date = first_day_of_next_month(today_in(self.config.billing_timezone))
        team.plan_credit_limit = plan.credit_limit if plan else self.config.default_plan_credit_limit
        if payment.subscription and not team.gateway_subscription_id:
            team.gateway_subscription_id = payment.subscription

        amount = payment.value if payment.value is not None else (plan.monthly_price if plan else Decimal("0"))
        await self.ledger.record_subscription_payment(
            team_id=team.id,
            amount=amount,
            description=payment.description or (f"Assinatura {plan.name}" if plan else "Assinatura"),
            gateway_id=payment.id,
            payment_method=payment.billing_type,
            invoice_url=payment.invoice_url,
            paid_at=datetime.utcnow(),
            metadata={
                "event": event.event,
                "subscription_id": payment.subscription,
                "plan_id": str(plan.id) if plan else None,
                "net_value": str(payment.net_value) if payment.net_value is not None else None,
            },
        )
        await self.db.commit()

        subscription_renewals_total.inc()
        logger.info(
            "subscription_renewed",
            team_id=str(team.id),
            plan_id=str(plan.id) if plan else None,
            next_due_date=team.next_due_date.isoformat(),
            payment_id=payment.id,
        )
        return ReconciliationOutcome.RENEWED

    async def _mark_overdue(self, event: SubscriptionOverdue) -> ReconciliationOutcome:
        """
        Move the team back to pending_payment for an overdue charge.

        Asaas can deliver the overdue notice after the confirmation of the
        same charge. A charge already recorded as paid keeps the team active.
        """
        payment = event.payment
        team = await self.ledger.get_team_by_customer_id(event.customer_id, for_update=True)
        if not team:
            logger.error("subscription_team_not_found", customer_id=event.customer_id, payment_id=payment.id)
            await self.db.commit()
            return ReconciliationOutcome.UNRESOLVED

        paid = await self.ledger.find_transaction_by_gateway_id(
            team.id, payment.id, TransactionKind.SUBSCRIPTION_PAYMENT
        )
        if paid and paid.status == TransactionStatus.PAID:
            logger.info("subscription_overdue_after_payment", team_id=str(team.id), payment_id=payment.id)
            await self.db.commit()
            return ReconciliationOutcome.ALREADY_PAID

        team.subscription_status = SubscriptionStatus.PENDING_PAYMENT
        await self.db.commit()

        logger.warning("subscription_overdue", team_id=str(team.id), payment_id=payment.id)
        return ReconciliationOutcome.MARKED_OVERDUE
