"""Agent health checks. Pings each agent's endpoint before starting a seminar."""

import asyncio
import logging

from config.config_loader import AgentProfile, Settings
from polymath.llm import LLMClient
from polymath.models import ChatMessage

logger = logging.getLogger(__name__)

_PING_PROMPT = "Reply with the word OK only."
_TIMEOUT_SEC = 15.0


async def _check_one(client: LLMClient, agent: AgentProfile, settings: Settings) -> tuple[str, bool, str]:
    """Ping a single agent. Returns (agent_id, ok, error_message)."""
    provider = settings.providers.get(agent.provider_id)
    if provider is None:
        return agent.id, False, f"Provider not found: {agent.provider_id}"
    try:
        await asyncio.wait_for(
            client.generate_completion(provider, agent, [ChatMessage(role="user", content=_PING_PROMPT)]),
            timeout=_TIMEOUT_SEC,
        )
        return agent.id, True, ""
    except Exception as exc:
        logger.debug("Health check failed for %s: %s", agent.id, exc)
        return agent.id, False, str(exc) or type(exc).__name__


async def run_health_checks(
    client: LLMClient,
    settings: Settings,
    agent_ids: list[str],
) -> dict[str, tuple[bool, str]]:
    """Ping the given agents in parallel. Unknown ids are reported as failures.

    Returns:
        Dict mapping agent id -> (ok, error_message).
        error_message is "" when ok is True.
    """
    results: dict[str, tuple[bool, str]] = {
        agent_id: (False, "Agent not found in settings")
        for agent_id in agent_ids
        if agent_id not in settings.agents
    }
    agents = [settings.agents[a] for a in agent_ids if a in settings.agents]
    checked = await asyncio.gather(*(_check_one(client, a, settings) for a in agents))
    results.update({agent_id: (ok, err) for agent_id, ok, err in checked})
    return results
