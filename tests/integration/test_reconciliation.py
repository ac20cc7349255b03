"""Integration tests for webhook reconciliation against the ledger."""
import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from credit_ledger.exceptions import GatewayError
from credit_ledger.models import Transaction
from credit_ledger.models.team import SubscriptionStatus
from credit_ledger.models.transaction import TransactionKind, TransactionStatus
from credit_ledger.schemas.gateway_event import GatewayWebhook, classify_event
from credit_ledger.services.purchase_service import PurchaseService
from credit_ledger.services.reconciliation_service import ReconciliationOutcome, ReconciliationService
from credit_ledger.utils.billing_dates import first_day_of_next_month, today_in
from tests.utils.factories import WebhookFactory


def _event(body: dict):
    return classify_event(GatewayWebhook.model_validate(body))


def _purchase_webhook(response, event: str = "PAYMENT_CONFIRMED") -> dict:
    return WebhookFactory.create(
        event,
        {
            "id": response.payment_id,
            "externalReference": f"credits_{response.transaction_id}",
        },
    )


def _subscription_webhook(team, event: str = "PAYMENT_CONFIRMED", payment_id: str = "pay_sub_0001") -> dict:
    return WebhookFactory.create(
        event,
        {
            "id": payment_id,
            "value": 297.0,
            "netValue": 292.03,
            "customer": team.gateway_customer_id,
            "subscription": team.gateway_subscription_id,
            "billingType": "CREDIT_CARD",
            "description": "Assinatura Pro",
            "externalReference": f"sub_{team.id}_{team.plan_id}",
        },
    )


async def _count_transactions(db: AsyncSession, team_id, kind: TransactionKind) -> int:
    result = await db.execute(
        select(func.count()).select_from(Transaction).where(Transaction.team_id == team_id, Transaction.kind == kind)
    )
    return result.scalar_one()


@pytest.mark.asyncio
async def test_confirmed_purchase_grants_credits_once(
    db_session: AsyncSession, test_team, gateway, test_settings
) -> None:
    """Redelivered confirmations do not grant the credits twice."""
    purchase = await PurchaseService(db_session, gateway, test_settings).initiate_credit_purchase(
        test_team.id, credits=1000, payment_method="PIX"
    )
    reconciler = ReconciliationService(db_session, test_settings)
    body = _purchase_webhook(purchase)

    first = await reconciler.process(_event(body))
    second = await reconciler.process(_event(body))
    received = await reconciler.process(_event(_purchase_webhook(purchase, "PAYMENT_RECEIVED")))

    assert first == ReconciliationOutcome.CREDITED
    assert second == ReconciliationOutcome.DUPLICATE
    assert received == ReconciliationOutcome.DUPLICATE

    await db_session.refresh(test_team)
    assert test_team.extra_credits == 1000

    transaction = await reconciler.ledger.get_transaction(purchase.transaction_id)
    assert transaction.status == TransactionStatus.PAID
    assert transaction.payment_method == "PIX"
    assert transaction.paid_at is not None


@pytest.mark.asyncio
async def test_balance_is_sum_of_paid_purchases(db_session: AsyncSession, test_team, gateway, test_settings) -> None:
    """Pending and failed purchases never count toward the balance."""
    service = PurchaseService(db_session, gateway, test_settings)
    paid_a = await service.initiate_credit_purchase(test_team.id, credits=500, payment_method="PIX")
    paid_b = await service.initiate_credit_purchase(test_team.id, credits=2500, payment_method="PIX")
    await service.initiate_credit_purchase(test_team.id, credits=1000, payment_method="PIX")

    gateway.fail_charge = True
    with pytest.raises(GatewayError):
        await service.initiate_credit_purchase(test_team.id, credits=5000, payment_method="CREDIT_CARD")

    reconciler = ReconciliationService(db_session, test_settings)
    await reconciler.process(_event(_purchase_webhook(paid_a)))
    await reconciler.process(_event(_purchase_webhook(paid_b, "PAYMENT_RECEIVED")))

    await db_session.refresh(test_team)
    assert test_team.extra_credits == 3000

    result = await db_session.execute(
        select(Transaction).where(
            Transaction.team_id == test_team.id,
            Transaction.status == TransactionStatus.PAID,
        )
    )
    assert sum(t.credits for t in result.scalars().all()) == test_team.extra_credits


@pytest.mark.asyncio
async def test_confirmation_for_failed_transaction_is_not_credited(
    db_session: AsyncSession, test_team, gateway, test_settings
) -> None:
    purchase = await PurchaseService(db_session, gateway, test_settings).initiate_credit_purchase(
        test_team.id, credits=500, payment_method="PIX"
    )
    reconciler = ReconciliationService(db_session, test_settings)
    await reconciler.ledger.mark_transaction_failed(purchase.transaction_id, reason="expired")
    await db_session.commit()

    outcome = await reconciler.process(_event(_purchase_webhook(purchase)))

    assert outcome == ReconciliationOutcome.UNRESOLVED
    await db_session.refresh(test_team)
    assert test_team.extra_credits == 0


@pytest.mark.asyncio
async def test_unknown_transaction_reference_is_acknowledged(db_session: AsyncSession, test_team, test_settings) -> None:
    body = WebhookFactory.create(
        "PAYMENT_CONFIRMED",
        {"externalReference": "credits_7f1c0a52-3a0e-4c52-9c6e-0a4b3d1f9e21"},
    )

    outcome = await ReconciliationService(db_session, test_settings).process(_event(body))

    assert outcome == ReconciliationOutcome.UNRESOLVED
    await db_session.refresh(test_team)
    assert test_team.extra_credits == 0


@pytest.mark.asyncio
async def test_malformed_reference_is_acknowledged(db_session: AsyncSession, test_settings) -> None:
    body = WebhookFactory.create("PAYMENT_CONFIRMED", {"externalReference": "credits_not-a-uuid"})

    outcome = await ReconciliationService(db_session, test_settings).process(_event(body))

    assert outcome == ReconciliationOutcome.UNRESOLVED


@pytest.mark.asyncio
async def test_unhandled_event_kind_is_ignored(db_session: AsyncSession, test_settings) -> None:
    body = WebhookFactory.create("PAYMENT_CREATED", {"externalReference": "credits_x"})

    outcome = await ReconciliationService(db_session, test_settings).process(_event(body))

    assert outcome == ReconciliationOutcome.IGNORED


@pytest.mark.asyncio
async def test_subscription_payment_activates_team(db_session: AsyncSession, subscribed_team, test_settings) -> None:
    reconciler = ReconciliationService(db_session, test_settings)

    outcome = await reconciler.process(_event(_subscription_webhook(subscribed_team)))

    assert outcome == ReconciliationOutcome.RENEWED
    await db_session.refresh(subscribed_team)
    assert subscribed_team.subscription_status == SubscriptionStatus.ACTIVE
    assert subscribed_team.plan_credit_limit == 5000
    assert subscribed_team.next_due_date == first_day_of_next_month(today_in(test_settings.billing_timezone))
    assert subscribed_team.extra_credits == 0

    renewal = await reconciler.ledger.find_transaction_by_gateway_id(
        subscribed_team.id, "pay_sub_0001", TransactionKind.SUBSCRIPTION_PAYMENT
    )
    assert renewal.status == TransactionStatus.PAID
    assert renewal.amount == Decimal("297.00")
    assert renewal.extra_metadata["subscription_id"] == "sub_VXJBYgP2u0eO"


@pytest.mark.asyncio
async def test_redelivered_subscription_payment_recorded_once(
    db_session: AsyncSession, subscribed_team, test_settings
) -> None:
    reconciler = ReconciliationService(db_session, test_settings)
    body = _subscription_webhook(subscribed_team)

    assert await reconciler.process(_event(body)) == ReconciliationOutcome.RENEWED
    assert await reconciler.process(_event(body)) == ReconciliationOutcome.DUPLICATE

    count = await _count_transactions(db_session, subscribed_team.id, TransactionKind.SUBSCRIPTION_PAYMENT)
    assert count == 1


@pytest.mark.asyncio
async def test_overdue_then_paid(db_session: AsyncSession, subscribed_team, test_settings) -> None:
    reconciler = ReconciliationService(db_session, test_settings)

    overdue = await reconciler.process(_event(_subscription_webhook(subscribed_team, "PAYMENT_OVERDUE")))
    await db_session.refresh(subscribed_team)
    assert overdue == ReconciliationOutcome.MARKED_OVERDUE
    assert subscribed_team.subscription_status == SubscriptionStatus.PENDING_PAYMENT

    paid = await reconciler.process(_event(_subscription_webhook(subscribed_team, "PAYMENT_RECEIVED")))
    await db_session.refresh(subscribed_team)
    assert paid == ReconciliationOutcome.RENEWED
    assert subscribed_team.subscription_status == SubscriptionStatus.ACTIVE


@pytest.mark.asyncio
async def test_subscription_payment_for_unknown_customer(db_session: AsyncSession, subscribed_team, test_settings) -> None:
    body = _subscription_webhook(subscribed_team)
    body["payment"]["customer"] = "cus_999999999999"

    outcome = await ReconciliationService(db_session, test_settings).process(_event(body))

    assert outcome == ReconciliationOutcome.UNRESOLVED
    await db_session.refresh(subscribed_team)
    assert subscribed_team.subscription_status == SubscriptionStatus.NONE


@pytest.mark.asyncio
async def test_overdue_after_confirmation_keeps_team_active(
    db_session: AsyncSession, subscribed_team, test_settings
) -> None:
    """A late overdue notice for a charge already paid does not suspend the team."""
    reconciler = ReconciliationService(db_session, test_settings)

    paid = await reconciler.process(_event(_subscription_webhook(subscribed_team, payment_id="pay_X")))
    late = await reconciler.process(
        _event(_subscription_webhook(subscribed_team, "PAYMENT_OVERDUE", payment_id="pay_X"))
    )

    assert paid == ReconciliationOutcome.RENEWED
    assert late == ReconciliationOutcome.ALREADY_PAID
    await db_session.refresh(subscribed_team)
    assert subscribed_team.subscription_status == SubscriptionStatus.ACTIVE


@pytest.mark.asyncio
async def test_overdue_for_other_charge_still_suspends(
    db_session: AsyncSession, subscribed_team, test_settings
) -> None:
    reconciler = ReconciliationService(db_session, test_settings)

    await reconciler.process(_event(_subscription_webhook(subscribed_team, payment_id="pay_october")))
    outcome = await reconciler.process(
        _event(_subscription_webhook(subscribed_team, "PAYMENT_OVERDUE", payment_id="pay_november"))
    )

    assert outcome == ReconciliationOutcome.MARKED_OVERDUE
    await db_session.refresh(subscribed_team)
    assert subscribed_team.subscription_status == SubscriptionStatus.PENDING_PAYMENT


@pytest.mark.asyncio
async def test_concurrent_redelivery_credits_once(
    db_session: AsyncSession, session_factory, test_team, gateway, test_settings
) -> None:
    """Two deliveries of the same confirmation racing on separate sessions grant once."""
    purchase = await PurchaseService(db_session, gateway, test_settings).initiate_credit_purchase(
        test_team.id, credits=1000, payment_method="PIX"
    )
    body = _purchase_webhook(purchase)

    async def deliver(payload: dict) -> ReconciliationOutcome:
        async with session_factory() as session:
            return await ReconciliationService(session, test_settings).process(_event(payload))

    outcomes = await asyncio.gather(deliver(body), deliver(body))

    assert outcomes.count(ReconciliationOutcome.CREDITED) == 1
    assert outcomes.count(ReconciliationOutcome.DUPLICATE) == 1
    await db_session.refresh(test_team)
    assert test_team.extra_credits == 1000


@pytest.mark.asyncio
async def test_concurrent_purchases_for_same_team_both_credit(
    db_session: AsyncSession, session_factory, test_team, gateway, test_settings
) -> None:
    """Settling two purchases at once never loses either increment."""
    service = PurchaseService(db_session, gateway, test_settings)
    small = await service.initiate_credit_purchase(test_team.id, credits=500, payment_method="PIX")
    large = await service.initiate_credit_purchase(test_team.id, credits=2500, payment_method="PIX")

    async def deliver(payload: dict) -> ReconciliationOutcome:
        async with session_factory() as session:
            return await ReconciliationService(session, test_settings).process(_event(payload))

    outcomes = await asyncio.gather(
        deliver(_purchase_webhook(small)),
        deliver(_purchase_webhook(large, "PAYMENT_RECEIVED")),
    )

    assert outcomes == [ReconciliationOutcome.CREDITED, ReconciliationOutcome.CREDITED]
    await db_session.refresh(test_team)
    assert test_team.extra_credits == 3000
