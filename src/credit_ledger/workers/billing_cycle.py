"""Billing cycle worker for the monthly rollover.

On the first day of each month, for every team:
1. Reset the new period's consumption counter to zero
2. Check whether the paid add-on channel is connected and apply its surcharge
3. Push the recomputed recurring amount to the gateway subscription

Each team is processed in its own session. A failure on one team is logged,
counted and never stops the batch.
"""
from datetime import date
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from credit_ledger.adapters.asaas_adapter import AsaasAdapter
from credit_ledger.config import Settings, settings as default_settings
from credit_ledger.database import AsyncSessionLocal
from credit_ledger.exceptions import AgentPlatformError, GatewayError, TeamNotFoundError
from credit_ledger.integrations.agent_platform import AgentPlatformClient
from credit_ledger.metrics import billing_cycle_teams_total
from credit_ledger.services.ledger_service import LedgerService
from credit_ledger.utils.billing_dates import billing_period, today_in

logger = structlog.get_logger(__name__)


async def process_billing_cycle(
    session_factory: async_sessionmaker = AsyncSessionLocal,
    gateway: Optional[AsaasAdapter] = None,
    agent_platform: Optional[AgentPlatformClient] = None,
    config: Optional[Settings] = None,
    today: Optional[date] = None,
) -> dict[str, Any]:
    """
    Roll every team into the new billing period.

    Meant to run daily; anything other than day 1 in the billing timezone
    is a no-op.

    Args:
        session_factory: Session factory (one session per team)
        gateway: Payment gateway adapter
        agent_platform: Channel status collaborator
        config: Settings
        today: Override for the current date in the billing timezone

    Returns:
        Dict with counts of processed teams, or {"skipped": True, "day": n}
    """
    config = config or default_settings
    today = today or today_in(config.billing_timezone)

    if today.day != 1:
        logger.info("billing_cycle_skipped", day=today.day)
        return {"skipped": True, "day": today.day}

    gateway = gateway or AsaasAdapter(config)
    agent_platform = agent_platform or AgentPlatformClient(config)
    period = billing_period(today)

    async with session_factory() as db:
        team_ids = await LedgerService(db).list_team_ids()

    logger.info("billing_cycle_started", period=period, teams_count=len(team_ids))

    consumption_reset = 0
    surcharges_applied = 0
    subscriptions_updated = 0
    errors = 0

    for team_id in team_ids:
        async with session_factory() as db:
            try:
                result = await _roll_team(db, team_id, period, gateway, agent_platform, config)
            except Exception as e:
                await db.rollback()
                errors += 1
                billing_cycle_teams_total.labels(outcome="failed").inc()
                logger.exception("billing_cycle_team_failed", team_id=str(team_id), exc_info=e)
                continue

        consumption_reset += 1
        surcharges_applied += int(result["surcharge_applied"])
        subscriptions_updated += int(result["subscription_updated"])
        errors += result["errors"]
        billing_cycle_teams_total.labels(outcome="failed" if result["errors"] else "processed").inc()

    logger.info(
        "billing_cycle_completed",
        period=period,
        teams_processed=len(team_ids),
        consumption_reset=consumption_reset,
        surcharges_applied=surcharges_applied,
        subscriptions_updated=subscriptions_updated,
        errors=errors,
    )

    return {
        "teams_processed": len(team_ids),
        "consumption_reset": consumption_reset,
        "surcharges_applied": surcharges_applied,
        "subscriptions_updated": subscriptions_updated,
        "errors": errors,
    }


async def _roll_team(
    db: AsyncSession,
    team_id: UUID,
    period: str,
    gateway: AsaasAdapter,
    agent_platform: AgentPlatformClient,
    config: Settings,
) -> dict[str, Any]:
    """
    Roll one team.

    The consumption reset is committed regardless of subscription status or
    of the channel lookup outcome. The gateway price is only pushed when the
    channel status is known.
    """
    ledger = LedgerService(db)
    team = await ledger.get_team(team_id)
    if not team:
        raise TeamNotFoundError(f"Team {team_id} not found")

    errors = 0
    channel_connected: Optional[bool] = False
    if team.agent_id:
        try:
            channel_connected = await agent_platform.has_connected_channel(
                team.agent_id, config.channel_surcharge_type
            )
        except AgentPlatformError as e:
            errors += 1
            channel_connected = None
            logger.warning("billing_cycle_channel_lookup_failed", team_id=str(team.id), error=e.message)

    base_price = Decimal(team.base_price or 0)
    value = base_price + config.channel_surcharge if channel_connected else base_price
    description = config.subscription_description
    if channel_connected:
        description = f"{description} + {config.channel_surcharge_type.title()}"

    await ledger.upsert_period_consumption(
        team.id,
        period,
        credits_used=0,
        metadata={
            "reset_type": "monthly_automatic",
            "recurring_value": str(value),
            "channel_connected": channel_connected,
        },
    )
    await db.commit()

    subscription_updated = False
    if team.gateway_subscription_id and channel_connected is not None:
        try:
            await gateway.update_subscription(
                team.gateway_subscription_id,
                value=value,
                description=description,
                update_pending_payments=True,
            )
            subscription_updated = True
        except GatewayError as e:
            errors += 1
            logger.warning(
                "billing_cycle_subscription_update_failed",
                team_id=str(team.id),
                subscription_id=team.gateway_subscription_id,
                error=e.message,
            )

    logger.info(
        "billing_cycle_team_rolled",
        team_id=str(team.id),
        period=period,
        channel_connected=channel_connected,
        value=str(value),
        subscription_updated=subscription_updated,
    )
    return {
        "surcharge_applied": bool(channel_connected),
        "subscription_updated": subscription_updated,
        "errors": errors,
    }


if __name__ == "__main__":
    import asyncio

    from credit_ledger.middleware.logging import setup_logging

    setup_logging()
    print(asyncio.run(process_billing_cycle()))
