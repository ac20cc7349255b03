"""Notification service integration for e-mail alerts."""
from typing import Any
from uuid import uuid4

import structlog

logger = structlog.get_logger(__name__)


class NotificationService:
    """
    Outbound notifications to team billing contacts.

    Delivery and formatting belong to the notification provider; this class
    only builds the message and hands it over.
    """

    def __init__(self, api_key: str | None = None, portal_url: str | None = None):
        """
        Initialize notification service.

        Args:
            api_key: API key for the e-mail provider
            portal_url: Billing portal link included in alerts
        """
        self.api_key = api_key
        self.portal_url = portal_url

    async def send_email(
        self,
        to: str,
        subject: str,
        body: str,
        template: str | None = None,
        template_vars: dict[str, Any] | None = None,
    ) -> dict:
        """
        Send e-mail notification.

        Returns:
            Dictionary with send status
        """
        # TODO: Hand off to the transactional e-mail provider once its API key is provisioned
        message_id = f"email_{uuid4().hex[:12]}"
        logger.info(
            "email_notification",
            to=to,
            subject=subject,
            template=template,
            message_id=message_id,
            has_api_key=self.api_key is not None,
        )

        return {
            "status": "sent",
            "to": to,
            "subject": subject,
            "message_id": message_id,
        }

    async def send_low_balance_alert(
        self,
        email: str,
        team_name: str,
        balance: int,
        threshold: int,
    ) -> dict:
        """
        Warn a team that its credit balance is running out.

        Args:
            email: Billing e-mail of the team
            team_name: Team display name
            balance: Remaining credits
            threshold: Alert threshold

        Returns:
            Send status dictionary
        """
        subject = f"Seus créditos estão acabando: restam {balance}"
        body = f"""
        Olá, {team_name}!

        Seu saldo de créditos está em {balance}, abaixo do limite de {threshold}.
        Compre créditos extras ou faça upgrade do seu plano para evitar interrupções.

        {self.portal_url or ""}
        """

        return await self.send_email(
            to=email,
            subject=subject,
            body=body,
            template="low_balance_alert",
            template_vars={
                "team_name": team_name,
                "balance": balance,
                "threshold": threshold,
                "portal_url": self.portal_url,
            },
        )
