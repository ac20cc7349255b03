"""Agent platform client: connected channels and credit usage."""
from typing import Any

import httpx
import structlog

from credit_ledger.config import Settings, settings as default_settings
from credit_ledger.exceptions import AgentPlatformError

logger = structlog.get_logger(__name__)


class AgentPlatformClient:
    """
    Read-only client for the agent platform.

    Answers two questions for the periodic jobs: whether a team's agent has
    a paid add-on channel connected, and how many credits it spent in a month.
    """

    REQUEST_TIMEOUT_SECONDS = 15

    def __init__(self, config: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.config = config or default_settings
        self._transport = transport

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        try:
            async with httpx.AsyncClient(
                base_url=self.config.agent_platform_api_url,
                headers={"Authorization": f"Bearer {self.config.agent_platform_api_token}"},
                timeout=self.REQUEST_TIMEOUT_SECONDS,
                transport=self._transport,
            ) as client:
                response = await client.get(path, params=params)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as e:
            logger.warning("agent_platform_request_failed", path=path, error=str(e))
            raise AgentPlatformError(f"Agent platform request failed: {e}") from e
        except ValueError as e:
            raise AgentPlatformError("Agent platform returned invalid JSON") from e

    async def has_connected_channel(self, agent_id: str, channel_type: str) -> bool:
        """
        Check whether the agent has a connected channel of the given type.

        Args:
            agent_id: Agent identifier on the platform
            channel_type: Channel type, e.g. "WHATSAPP"

        Returns:
            True if at least one channel of that type is connected

        Raises:
            AgentPlatformError: If the lookup fails
        """
        body = await self._get(f"/agent/{agent_id}/search")
        channels = body.get("data", []) if isinstance(body, dict) else body
        return any(
            channel.get("type") == channel_type and bool(channel.get("connected"))
            for channel in channels or []
        )

    async def get_credits_spent(self, agent_id: str, year: int, month: int) -> int:
        """
        Credits the agent consumed in a calendar month.

        Raises:
            AgentPlatformError: If the lookup fails
        """
        body = await self._get(f"/agent/{agent_id}/credits-spent", params={"year": year, "month": month})
        try:
            return int(body.get("total", 0) or 0)
        except (TypeError, ValueError, AttributeError) as e:
            raise AgentPlatformError("Agent platform returned an invalid credit total") from e
