"""Service for initiating credit purchases and plan subscriptions."""
import asyncio
import time
from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from credit_ledger.adapters.asaas_adapter import AsaasAdapter
from credit_ledger.config import Settings, settings as default_settings
from credit_ledger.exceptions import (
    GatewayError,
    InvoiceUrlTimeoutError,
    PlanNotFoundError,
    PurchaseValidationError,
    TeamNotFoundError,
)
from credit_ledger.metrics import invoice_poll_seconds, purchases_initiated_total
from credit_ledger.models.team import SubscriptionStatus, Team
from credit_ledger.models.transaction import TransactionKind
from credit_ledger.schemas.error import ErrorCode
from credit_ledger.schemas.purchase import CreditPurchaseResponse, SubscriptionResponse
from credit_ledger.services.ledger_service import LedgerService
from credit_ledger.utils.billing_dates import charge_due_date, first_day_of_next_month, today_in
from credit_ledger.utils.polling import PollingPolicy, poll_until
from credit_ledger.utils.pricing import credit_price, credit_purchase_reference, subscription_reference, to_money

logger = structlog.get_logger(__name__)

PAYMENT_METHODS = ("PIX", "CREDIT_CARD")


class PurchaseService:
    """
    Opens obligations and asks the gateway to collect them.

    Nothing here touches a balance. Credits only move when the gateway
    confirms payment through the webhook.

    Each step commits before the next external call, so a crash leaves
    either no transaction or a transaction the gateway knows about. A
    synchronous charge failure moves the transaction to FAILED.
    """

    def __init__(
        self,
        db: AsyncSession,
        gateway: AsaasAdapter,
        config: Settings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Initialize purchase service.

        Args:
            db: Database session
            gateway: Payment gateway adapter
            config: Settings (pricing, polling policy, timezone)
            sleep: Sleep function used while polling (injectable for tests)
        """
        self.db = db
        self.gateway = gateway
        self.config = config or default_settings
        self.ledger = LedgerService(db)
        self._sleep = sleep

    async def _load_team(self, team_id: UUID) -> Team:
        team = await self.ledger.get_team(team_id)
        if not team:
            raise TeamNotFoundError(f"Team {team_id} not found")
        if not team.tax_id:
            raise PurchaseValidationError(
                "CPF/CNPJ is required on the team profile to issue a charge",
                code=ErrorCode.MISSING_TAX_ID,
            )
        return team

    async def _ensure_customer(self, team: Team, lookup_existing: bool = False) -> str:
        """
        Return the team's gateway customer id, creating it on first use.

        The id is committed as soon as it is known so the customer is never
        created twice for the same team.

        Args:
            team: Team needing a gateway customer
            lookup_existing: Search the gateway by billing e-mail before creating

        Returns:
            Gateway customer id
        """
        if team.gateway_customer_id:
            return team.gateway_customer_id

        customer_id = None
        if lookup_existing:
            customer_id = await self.gateway.find_customer_by_email(team.billing_email)
            if customer_id:
                logger.info("gateway_customer_reused", team_id=str(team.id), customer_id=customer_id)

        if not customer_id:
            customer_id = await self.gateway.create_customer(
                name=team.name,
                email=team.billing_email,
                tax_id=team.tax_id,
            )

        await self.ledger.set_gateway_customer(team, customer_id)
        await self.db.commit()
        return customer_id

    async def initiate_credit_purchase(
        self,
        team_id: UUID,
        credits: int,
        payment_method: str,
        card_token: Optional[str] = None,
        declared_amount: Any = None,
    ) -> CreditPurchaseResponse:
        """
        Start a credit purchase.

        Args:
            team_id: Purchasing team
            credits: Credits requested (> 0)
            payment_method: PIX or CREDIT_CARD
            card_token: Tokenized card for CREDIT_CARD
            declared_amount: Amount the caller displayed, if any; must equal the computed price

        Returns:
            Payment instructions (invoice URL, plus QR code for PIX)

        Raises:
            TeamNotFoundError: If the team does not exist
            PurchaseValidationError: If the request or team profile is invalid
            GatewayError: If the gateway rejects the customer or charge
        """
        if credits is None or credits <= 0:
            raise PurchaseValidationError("Credits must be a positive integer", code=ErrorCode.INVALID_CREDITS)
        if payment_method not in PAYMENT_METHODS:
            raise PurchaseValidationError(
                f"Unsupported payment method: {payment_method}",
                code=ErrorCode.INVALID_ENUM_VALUE,
            )

        amount = credit_price(credits, self.config.credit_unit_size, self.config.credit_unit_price)
        if declared_amount is not None and to_money(declared_amount) != amount:
            raise PurchaseValidationError(
                f"Amount {declared_amount} does not match the price of {credits} credits ({amount})",
                code=ErrorCode.INVALID_AMOUNT,
            )

        team = await self._load_team(team_id)
        customer_id = await self._ensure_customer(team)

        transaction = await self.ledger.open_transaction(
            team_id=team.id,
            kind=TransactionKind.CREDIT_PURCHASE,
            amount=amount,
            description=f"Compra de {credits} créditos extras",
            metadata={"credits": credits, "payment_method": payment_method},
        )
        await self.db.commit()

        try:
            charge = await self.gateway.create_charge(
                customer_id=customer_id,
                billing_type=payment_method,
                value=amount,
                due_date=charge_due_date(today_in(self.config.billing_timezone)),
                description=transaction.description,
                external_reference=credit_purchase_reference(transaction.id),
                card_token=card_token,
            )
        except GatewayError:
            await self.ledger.mark_transaction_failed(transaction.id, reason="charge_creation_failed")
            await self.db.commit()
            purchases_initiated_total.labels(
                kind="credit_purchase", billing_type=payment_method, outcome="gateway_error"
            ).inc()
            raise

        await self.ledger.attach_charge(transaction, charge.id, charge.invoice_url)
        await self.db.commit()

        response = CreditPurchaseResponse(
            payment_id=charge.id,
            invoice_url=charge.invoice_url,
            transaction_id=transaction.id,
        )

        if payment_method == "PIX":
            try:
                qr_code = await self.gateway.get_pix_qr_code(charge.id)
                response.pix_qr_code = qr_code.encoded_image
                response.pix_copy_paste = qr_code.payload
            except GatewayError as e:
                logger.warning("pix_qr_code_unavailable", charge_id=charge.id, error=e.message)

        purchases_initiated_total.labels(kind="credit_purchase", billing_type=payment_method, outcome="created").inc()
        logger.info(
            "credit_purchase_initiated",
            team_id=str(team.id),
            transaction_id=str(transaction.id),
            charge_id=charge.id,
            credits=credits,
            amount=str(amount),
            payment_method=payment_method,
        )
        return response

    async def initiate_plan_subscription(
        self,
        team_id: UUID,
        plan_id: UUID,
        card_token: Optional[str] = None,
        card_holder_info: Optional[dict[str, Any]] = None,
        is_cancelled: Optional[Callable[[], Awaitable[bool]]] = None,
    ) -> SubscriptionResponse:
        """
        Subscribe a team to a plan and wait for the first invoice.

        The gateway generates the first charge asynchronously, so its invoice
        URL is polled with a bounded policy. The subscription linkage is
        committed before polling, so a timeout still leaves the team pointing
        at the subscription the webhook will confirm.

        Args:
            team_id: Subscribing team
            plan_id: Chosen plan
            card_token: Tokenized card; without one the customer picks the method on the invoice
            card_holder_info: Holder data required with a card token
            is_cancelled: Returns True when the caller went away

        Returns:
            Subscription id, team subscription status and invoice URL

        Raises:
            TeamNotFoundError / PlanNotFoundError: If either does not exist
            GatewayError: If the gateway rejects the subscription
            InvoiceUrlTimeoutError: If no invoice appeared within the polling budget
            PollingCancelledError: If the caller disconnected while polling
        """
        team = await self._load_team(team_id)
        plan = await self.ledger.get_plan(plan_id)
        if not plan or not plan.active:
            raise PlanNotFoundError(f"Plan {plan_id} not found")

        billing_type = "CREDIT_CARD" if card_token else "UNDEFINED"
        customer_id = await self._ensure_customer(team, lookup_existing=True)

        try:
            subscription_id = await self.gateway.create_subscription(
                customer_id=customer_id,
                billing_type=billing_type,
                value=plan.monthly_price,
                next_due_date=first_day_of_next_month(today_in(self.config.billing_timezone)),
                description=f"Assinatura {plan.name}",
                external_reference=subscription_reference(team.id, plan.id),
                card_token=card_token,
                card_holder_info=card_holder_info,
            )
        except GatewayError:
            purchases_initiated_total.labels(kind="subscription", billing_type=billing_type, outcome="gateway_error").inc()
            raise

        await self.ledger.link_subscription(team, subscription_id, plan, SubscriptionStatus.PENDING_PAYMENT)
        await self.db.commit()

        logger.info(
            "subscription_created",
            team_id=str(team.id),
            plan_id=str(plan.id),
            subscription_id=subscription_id,
            billing_type=billing_type,
        )

        async def fetch_invoice_url() -> Optional[str]:
            try:
                charge = await self.gateway.get_latest_subscription_charge(subscription_id)
            except GatewayError as e:
                logger.warning("subscription_charge_lookup_failed", subscription_id=subscription_id, error=e.message)
                return None
            return charge.get("invoiceUrl") if charge else None

        policy = PollingPolicy(
            interval_seconds=self.config.invoice_poll_interval_seconds,
            max_attempts=self.config.invoice_poll_max_attempts,
        )
        started = time.monotonic()
        invoice_url = await poll_until(fetch_invoice_url, policy, sleep=self._sleep, is_cancelled=is_cancelled)
        invoice_poll_seconds.observe(time.monotonic() - started)

        if not invoice_url:
            purchases_initiated_total.labels(kind="subscription", billing_type=billing_type, outcome="timeout").inc()
            logger.warning("subscription_invoice_timeout", team_id=str(team.id), subscription_id=subscription_id)
            raise InvoiceUrlTimeoutError(
                "Subscription created but the invoice was not generated in time. "
                "Check your email for the payment link."
            )

        purchases_initiated_total.labels(kind="subscription", billing_type=billing_type, outcome="created").inc()
        return SubscriptionResponse(
            subscription_id=subscription_id,
            status=team.subscription_status.value,
            invoice_url=invoice_url,
        )
