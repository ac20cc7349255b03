"""Low-balance monitor.

Hourly, for every team with a usage-reporting agent, computes
balance = plan credit limit + extra credits - credits spent this month
and alerts the team at most once per calendar day when 0 <= balance < threshold.
"""
from datetime import date
from typing import Any, Optional
from uuid import UUID

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from credit_ledger.config import Settings, settings as default_settings
from credit_ledger.database import AsyncSessionLocal
from credit_ledger.exceptions import TeamNotFoundError
from credit_ledger.integrations.agent_platform import AgentPlatformClient
from credit_ledger.integrations.notification_service import NotificationService
from credit_ledger.metrics import low_balance_alerts_total
from credit_ledger.services.ledger_service import LedgerService
from credit_ledger.utils.billing_dates import billing_period, today_in

logger = structlog.get_logger(__name__)


async def check_low_balances(
    session_factory: async_sessionmaker = AsyncSessionLocal,
    agent_platform: Optional[AgentPlatformClient] = None,
    notifier: Optional[NotificationService] = None,
    config: Optional[Settings] = None,
    today: Optional[date] = None,
) -> dict[str, int]:
    """
    Check balances and send low-balance alerts.

    Returns:
        Dict with counts of checked teams, sent alerts, skipped repeats and errors
    """
    config = config or default_settings
    today = today or today_in(config.billing_timezone)
    agent_platform = agent_platform or AgentPlatformClient(config)
    notifier = notifier or NotificationService(portal_url=config.billing_portal_url)

    async with session_factory() as db:
        team_ids = await LedgerService(db).list_team_ids_with_agent()

    teams_checked = 0
    alerts_sent = 0
    already_alerted = 0
    errors = 0

    for team_id in team_ids:
        async with session_factory() as db:
            try:
                outcome = await _check_team(db, team_id, today, agent_platform, notifier, config)
            except Exception as e:
                await db.rollback()
                errors += 1
                logger.exception("low_balance_check_failed", team_id=str(team_id), exc_info=e)
                continue

        teams_checked += 1
        if outcome == "alerted":
            alerts_sent += 1
        elif outcome == "already_alerted":
            already_alerted += 1

    logger.info(
        "low_balance_check_completed",
        teams_checked=teams_checked,
        alerts_sent=alerts_sent,
        already_alerted=already_alerted,
        errors=errors,
    )

    return {
        "teams_checked": teams_checked,
        "alerts_sent": alerts_sent,
        "already_alerted": already_alerted,
        "errors": errors,
    }


async def _check_team(
    db: AsyncSession,
    team_id: UUID,
    today: date,
    agent_platform: AgentPlatformClient,
    notifier: NotificationService,
    config: Settings,
) -> str:
    ledger = LedgerService(db)
    team = await ledger.get_team(team_id)
    if not team:
        raise TeamNotFoundError(f"Team {team_id} not found")

    spent = await agent_platform.get_credits_spent(team.agent_id, today.year, today.month)
    plan_limit = team.plan_credit_limit or config.default_plan_credit_limit
    balance = plan_limit + team.extra_credits - spent

    period = billing_period(today)
    consumption = await ledger.get_period_consumption(team.id, period)
    metadata: dict[str, Any] = dict(consumption.extra_metadata or {}) if consumption else {}
    metadata["last_balance_checked"] = balance

    # Negative balances are exhausted teams, handled outside this monitor
    if not 0 <= balance < config.low_balance_threshold:
        outcome = "ok"
    elif metadata.get("last_low_credit_alert") == today.isoformat():
        outcome = "already_alerted"
    else:
        await notifier.send_low_balance_alert(
            email=team.billing_email,
            team_name=team.name,
            balance=balance,
            threshold=config.low_balance_threshold,
        )
        metadata["last_low_credit_alert"] = today.isoformat()
        low_balance_alerts_total.inc()
        logger.info("low_balance_alert_sent", team_id=str(team.id), balance=balance)
        outcome = "alerted"

    await ledger.upsert_period_consumption(team.id, period, credits_used=spent, metadata=metadata)
    await db.commit()
    return outcome


if __name__ == "__main__":
    import asyncio

    from credit_ledger.middleware.logging import setup_logging

    setup_logging()
    print(asyncio.run(check_low_balances()))
