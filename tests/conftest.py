"""Shared pytest fixtures."""

import asyncio
import json
from pathlib import Path

import pytest

from config.config_loader import (
    AgentProfile,
    AppConfig,
    DefaultsConfig,
    GenerationParameters,
    ProviderConfig,
    Settings,
)
from polymath.models import ChatMessage, SeminarConfig
from polymath.providers.base import ChatBackend
from polymath.state import SeminarStore


def arbiter_json(
    score: float = 0.5,
    facts: list[str] | None = None,
    focus: str = "Focus?",
    clusters: list[dict] | None = None,
) -> str:
    """Serialize an arbiter verdict the way a well-behaved arbiter model would."""
    if clusters is None:
        clusters = [{"label": "Cluster A", "coreArgument": "Arg A", "supportingAgentIds": ["a1"], "strength": 50}]
    return json.dumps({
        "clusters": clusters,
        "consensusFacts": ["Fact 1"] if facts is None else facts,
        "nextRoundFocus": focus,
        "convergenceScore": score,
    })


class FakeLLM:
    """Test double for LLMClient.

    Agents answer "Response from <name>"; JSON-mode calls return the next
    arbiter answer (the last one repeats). Per-agent exceptions and delays
    can be configured by agent id.
    """

    def __init__(
        self,
        arbiter_outputs: list[str] | None = None,
        failures: dict[str, Exception] | None = None,
        delays: dict[str, float] | None = None,
    ) -> None:
        self.arbiter_outputs = arbiter_outputs or [arbiter_json()]
        self.failures = failures or {}
        self.delays = delays or {}
        self.calls: list[dict] = []
        self.on_call = None

    async def generate_completion(
        self,
        provider: ProviderConfig,
        agent: AgentProfile,
        messages: list[ChatMessage],
        json_mode: bool = False,
    ) -> str:
        self.calls.append({"provider": provider, "agent": agent, "messages": messages, "json_mode": json_mode})
        if self.on_call:
            self.on_call(agent)
        if agent.id in self.delays:
            await asyncio.sleep(self.delays[agent.id])
        if agent.id in self.failures:
            raise self.failures[agent.id]
        if json_mode:
            index = min(sum(1 for c in self.calls if c["json_mode"]) - 1, len(self.arbiter_outputs) - 1)
            return self.arbiter_outputs[index]
        return f"Response from {agent.name}"

    @property
    def agent_calls(self) -> list[dict]:
        return [c for c in self.calls if not c["json_mode"]]

    @property
    def arbiter_calls(self) -> list[dict]:
        return [c for c in self.calls if c["json_mode"]]


class FakeBackend(ChatBackend):
    """ChatBackend whose complete() walks through a scripted list of results.

    Exceptions in the script are raised, anything else is returned.
    """

    def __init__(self, provider: ProviderConfig, script: list | None = None) -> None:
        super().__init__(provider)
        self.script = list(script or ["ok"])
        self.calls: list[dict] = []

    async def complete(self, model, messages, parameters, json_mode=False):  # type: ignore[override]
        self.calls.append({"model": model, "messages": messages, "parameters": parameters, "json_mode": json_mode})
        result = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(result, BaseException):
            raise result
        return result


@pytest.fixture
def sample_provider() -> ProviderConfig:
    return ProviderConfig(
        id="p1",
        name="Test Provider",
        kind="openai",
        base_url="https://api.test.com/v1",
        api_key="sk-test",
    )


@pytest.fixture
def sample_agent() -> AgentProfile:
    return AgentProfile(
        id="a1",
        name="Test Agent",
        provider_id="p1",
        model="gpt-test",
        parameters=GenerationParameters(temperature=0.7, top_p=1.0, max_tokens=100),
        system_prompt="System Prompt",
    )


@pytest.fixture
def sample_settings(sample_provider: ProviderConfig) -> Settings:
    params = GenerationParameters(temperature=0.7, top_p=1.0, max_tokens=100)
    return Settings(
        providers={"p1": sample_provider},
        agents={
            "a1": AgentProfile("a1", "Agent 1", "p1", "model-1", params),
            "a2": AgentProfile("a2", "Agent 2", "p1", "model-2", params),
            "arbiter": AgentProfile(
                "arbiter", "Arbiter", "p1", "model-arbiter",
                GenerationParameters(temperature=0.9, top_p=1.0, max_tokens=500),
            ),
        },
    )


@pytest.fixture
def sample_seminar_config() -> SeminarConfig:
    return SeminarConfig(
        max_rounds=2,
        consensus_threshold=0.8,
        arbiter_id="arbiter",
        active_agent_ids=["a1", "a2"],
    )


@pytest.fixture
def sample_app_config(sample_settings: Settings, tmp_path: Path) -> AppConfig:
    return AppConfig(
        defaults=DefaultsConfig(
            max_rounds=3,
            consensus_threshold=0.8,
            output_dir=tmp_path / "output",
            arbiter="arbiter",
            default_panel=["a1", "a2"],
        ),
        settings=sample_settings,
    )


@pytest.fixture
def store() -> SeminarStore:
    return SeminarStore()


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()
