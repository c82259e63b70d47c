"""Seminar orchestration: per-round fan-out to agents, arbitration, convergence check."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from config.config_loader import AgentProfile, PromptsConfig, ProviderConfig, Settings
from polymath.arbitration import ArbitrationParseError, build_arbiter_prompt, try_parse_arbitration
from polymath.llm import LLMClient
from polymath.models import AgentInput, ArbitrationResult, ChatMessage, SeminarConfig, SeminarRound, SeminarState
from polymath.prompts import DEFAULT_PROMPTS, build_agent_prompt

logger = logging.getLogger(__name__)


class SeminarConfigError(Exception):
    """Raised when settings cannot satisfy the seminar configuration."""


class SeminarEngine:
    """Runs one seminar at a time, publishing every transition through update_state.

    The engine never owns the state: it reads snapshots with get_state and
    applies partial updates with update_state. Settings are read through
    get_settings at call time and never mutated.
    """

    def __init__(
        self,
        get_state: Callable[[], SeminarState],
        update_state: Callable[[dict[str, Any]], None],
        get_settings: Callable[[], Settings],
        llm: LLMClient | None = None,
        prompts: PromptsConfig | None = None,
    ) -> None:
        self._get_state = get_state
        self._update_state = update_state
        self._get_settings = get_settings
        self._llm = llm if llm is not None else LLMClient()
        self._prompts = prompts if prompts is not None else DEFAULT_PROMPTS
        self._running = False

    async def start_seminar(self, topic: str, config: SeminarConfig) -> None:
        """Run a seminar until it completes or pauses on an error.

        Failures never propagate: they end up in the state's status and error
        fields. Rounds run sequentially, at most config.max_rounds of them.

        Raises:
            RuntimeError: If a seminar is already running on this engine.
        """
        if self._running:
            raise RuntimeError("A seminar is already running on this engine")
        self._running = True
        try:
            self._update_state({
                "topic": topic,
                "config": config,
                "status": "running",
                "rounds": [],
                "current_round_index": 0,
                "error": None,
            })
            if config.max_rounds < 1:
                logger.error("Refusing to start seminar with max_rounds=%d", config.max_rounds)
                self._update_state({
                    "status": "paused",
                    "error": f"max_rounds must be at least 1, got {config.max_rounds}",
                })
                return
            logger.info("Seminar started: %r (max %d rounds)", topic, config.max_rounds)

            try:
                for round_index in range(1, config.max_rounds + 1):
                    if not await self._run_round(round_index):
                        break
            except Exception as exc:
                # Failures outside a round's model calls, e.g. reading settings.
                logger.error("Seminar aborted: %s", exc)
                self._update_state({"status": "paused", "error": str(exc) or type(exc).__name__})
        finally:
            self._running = False

    async def _run_round(self, round_index: int) -> bool:
        """Execute one round. Returns True when another round should follow."""
        state = self._get_state()
        settings = self._get_settings()
        config = state.config

        active_agents = [a for a in settings.agents.values() if a.id in config.active_agent_ids]
        if not active_agents:
            logger.error("No active agents resolved from %s", config.active_agent_ids)
            self._update_state({"status": "completed", "error": "No active agents selected."})
            return False

        current = SeminarRound(round_index=round_index, status="processing")
        self._update_state({
            "rounds": [*state.rounds, current],
            "current_round_index": round_index,
        })
        logger.info("Starting round %d with %d agents", round_index, len(active_agents))

        try:
            # Prompts see the state as of round start, before this round was appended.
            prompts = [build_agent_prompt(a, state, round_index, self._prompts) for a in active_agents]
            providers = [self._provider_for(a, settings) for a in active_agents]
            contents = await asyncio.gather(*(
                self._llm.generate_completion(provider, agent, [ChatMessage(role="user", content=prompt)])
                for agent, provider, prompt in zip(active_agents, providers, prompts)
            ))

            current = replace(current, inputs=[
                AgentInput(agent_id=agent.id, content=content)
                for agent, content in zip(active_agents, contents)
            ])
            self._update_round(current)

            arbitration = await self._arbitrate(state.topic, current.inputs, config.arbiter_id, settings)

            current = replace(current, arbitration=arbitration, status="completed")
            self._update_round(current)
        except Exception as exc:
            logger.error("Round %d failed: %s", round_index, exc)
            self._update_round(replace(current, arbitration=ArbitrationResult(), status="failed"))
            self._update_state({"status": "paused", "error": str(exc)})
            return False

        logger.info(
            "Round %d complete: convergence %.2f (threshold %.2f)",
            round_index,
            arbitration.convergence_score,
            config.consensus_threshold,
        )

        if arbitration.convergence_score >= config.consensus_threshold or round_index >= config.max_rounds:
            self._update_state({"status": "completed"})
            logger.info("Seminar completed after %d round(s)", round_index)
            return False
        return True

    async def _arbitrate(
        self,
        topic: str,
        inputs: list[AgentInput],
        arbiter_id: str,
        settings: Settings,
    ) -> ArbitrationResult:
        arbiter = settings.agents.get(arbiter_id)
        if arbiter is None:
            raise SeminarConfigError("Arbiter agent not found in settings.")

        # Deterministic synthesis on a copy; the configured profile stays untouched.
        strict_arbiter = replace(arbiter, parameters=replace(arbiter.parameters, temperature=0.0))

        raw_output = await self._llm.generate_completion(
            self._provider_for(strict_arbiter, settings),
            strict_arbiter,
            [ChatMessage(role="user", content=build_arbiter_prompt(topic, inputs, self._prompts))],
            json_mode=True,
        )
        result = try_parse_arbitration(raw_output)
        if isinstance(result, ArbitrationParseError):
            raise result
        return result

    def _update_round(self, data: SeminarRound) -> None:
        rounds = list(self._get_state().rounds)
        for i, existing in enumerate(rounds):
            if existing.round_index == data.round_index:
                rounds[i] = data
                break
        else:
            rounds.append(data)
        self._update_state({"rounds": rounds})

    @staticmethod
    def _provider_for(agent: AgentProfile, settings: Settings) -> ProviderConfig:
        provider = settings.providers.get(agent.provider_id)
        if provider is None:
            raise SeminarConfigError(f"Provider not found for agent {agent.name}")
        return provider
