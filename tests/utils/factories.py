"""Test data factories using Faker for generating realistic test data."""
from decimal import Decimal
from typing import Any

from faker import Faker

from credit_ledger.models.team import SubscriptionStatus

fake = Faker("pt_BR")


class PlanFactory:
    """Factory for creating test plan data."""

    @staticmethod
    def create(overrides: dict[str, Any] | None = None) -> dict[str, Any]:
        data = {
            "name": fake.word().title(),
            "monthly_price": Decimal(fake.random_element(["97.00", "197.00", "297.00"])),
            "credit_limit": fake.random_element([1000, 3000, 5000]),
            "user_limit": fake.random_element([None, 3, 10]),
            "active": True,
        }
        if overrides:
            data.update(overrides)
        return data


class TeamFactory:
    """Factory for creating test team data."""

    @staticmethod
    def create(overrides: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        Create team test data.

        Defaults to a team with a CPF on file, no gateway linkage and an
        empty balance.

        Args:
            overrides: Optional field overrides

        Returns:
            dict: Team data
        """
        data = {
            "name": fake.company(),
            "billing_email": fake.unique.email(),
            "tax_id": fake.cpf(),
            "gateway_customer_id": None,
            "gateway_subscription_id": None,
            "subscription_status": SubscriptionStatus.NONE,
            "plan_id": None,
            "plan_credit_limit": 0,
            "extra_credits": 0,
            "base_price": Decimal("0.00"),
            "agent_id": None,
        }
        if overrides:
            data.update(overrides)
        return data


class WebhookFactory:
    """Factory for Asaas webhook bodies."""

    @staticmethod
    def create(
        event: str = "PAYMENT_CONFIRMED",
        payment_overrides: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Create a webhook body.

        Args:
            event: Asaas event kind
            payment_overrides: Fields of the payment object to override

        Returns:
            dict: {"event": ..., "payment": {...}} as Asaas posts it
        """
        payment = {
            "id": f"pay_{fake.unique.numerify(text='############')}",
            "value": 80.0,
            "netValue": 78.51,
            "customer": f"cus_{fake.numerify(text='############')}",
            "billingType": "PIX",
            "paymentDate": fake.date_this_month().isoformat(),
            "description": "Compra de 1000 créditos extras",
            "invoiceUrl": f"https://sandbox.asaas.com/i/{fake.lexify(text='????????????')}",
            "externalReference": None,
            "subscription": None,
        }
        if payment_overrides:
            payment.update(payment_overrides)
        return {"event": event, "payment": payment}
