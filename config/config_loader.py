"""Load settings.yaml into typed dataclasses. Resolves API keys from the environment."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

_SETTINGS_PATH = Path(__file__).parent / "settings.yaml"

BACKEND_KINDS = ("openai", "anthropic", "ollama")


@dataclass
class ProviderConfig:
    id: str
    name: str
    kind: str              # "openai", "anthropic" or "ollama"
    base_url: str
    api_key: str | None = None


@dataclass
class GenerationParameters:
    temperature: float     # 0.0 - 2.0
    top_p: float = 1.0
    max_tokens: int = 1024


@dataclass
class AgentProfile:
    id: str
    name: str
    provider_id: str
    model: str
    parameters: GenerationParameters
    system_prompt: str | None = None   # persona override
    color: str | None = None           # rich style used by the console output


@dataclass
class Settings:
    providers: dict[str, ProviderConfig] = field(default_factory=dict)
    agents: dict[str, AgentProfile] = field(default_factory=dict)


@dataclass
class PromptsConfig:
    opening: str
    rebuttal: str
    arbitration: str


@dataclass
class DefaultsConfig:
    max_rounds: int
    consensus_threshold: float
    output_dir: Path
    arbiter: str | None = None
    default_panel: list[str] = field(default_factory=list)


@dataclass
class InboxConfig:
    dir: Path = Path("./inbox")
    archive_dir: Path = Path("./inbox/archive")


@dataclass
class AppConfig:
    defaults: DefaultsConfig
    settings: Settings
    prompts: PromptsConfig | None = None
    inbox: InboxConfig = field(default_factory=InboxConfig)


def _load_provider(provider_id: str, raw: dict) -> ProviderConfig:
    kind = str(raw["kind"])
    if kind not in BACKEND_KINDS:
        raise ValueError(f"Provider '{provider_id}': unknown kind '{kind}' (expected one of {', '.join(BACKEND_KINDS)})")

    api_key: str | None = None
    api_key_env = raw.get("api_key_env")
    if api_key_env:
        api_key = os.environ.get(api_key_env, "").strip() or None
        if api_key:
            logger.info("Provider available: %s", provider_id)
        else:
            logger.info("Provider has no API key: %s (set %s in .env)", provider_id, api_key_env)

    return ProviderConfig(
        id=provider_id,
        name=str(raw.get("name", provider_id)),
        kind=kind,
        base_url=str(raw["base_url"]).rstrip("/"),
        api_key=api_key,
    )


def _load_agent(agent_id: str, raw: dict, providers: dict[str, ProviderConfig]) -> AgentProfile:
    provider_id = str(raw["provider"])
    if provider_id not in providers:
        raise ValueError(f"Agent '{agent_id}' references unknown provider '{provider_id}'")

    params_raw = raw.get("parameters", {})
    temperature = float(params_raw.get("temperature", 0.7))
    if not 0.0 <= temperature <= 2.0:
        raise ValueError(f"Agent '{agent_id}': temperature must be within [0, 2], got {temperature}")

    return AgentProfile(
        id=agent_id,
        name=str(raw.get("name", agent_id)),
        provider_id=provider_id,
        model=str(raw["model"]),
        parameters=GenerationParameters(
            temperature=temperature,
            top_p=float(params_raw.get("top_p", 1.0)),
            max_tokens=int(params_raw.get("max_tokens", 1024)),
        ),
        system_prompt=raw.get("system_prompt") or None,
        color=raw.get("color"),
    )


def load_config(settings_path: Path = _SETTINGS_PATH) -> AppConfig:
    """Load and validate configuration from settings.yaml.

    Raises FileNotFoundError if the settings file is missing and ValueError on
    invalid values. Missing API keys are logged, not raised; the invocation
    client rejects calls to credential-less providers.
    """
    if not settings_path.exists():
        raise FileNotFoundError(f"Settings file not found: {settings_path}")

    with settings_path.open("r", encoding="utf-8") as f:
        raw = yaml.safe_load(f)

    providers = {pid: _load_provider(pid, p) for pid, p in raw["providers"].items()}
    agents = {aid: _load_agent(aid, a, providers) for aid, a in raw["agents"].items()}

    defaults_raw = raw["defaults"]
    defaults = DefaultsConfig(
        max_rounds=int(defaults_raw["max_rounds"]),
        consensus_threshold=float(defaults_raw["consensus_threshold"]),
        output_dir=Path(defaults_raw["output_dir"]),
        arbiter=defaults_raw.get("arbiter"),
        default_panel=list(defaults_raw.get("default_panel", [])),
    )
    if defaults.max_rounds < 1:
        raise ValueError(f"defaults.max_rounds must be >= 1, got {defaults.max_rounds}")
    if not 0.0 <= defaults.consensus_threshold <= 1.0:
        raise ValueError(f"defaults.consensus_threshold must be within [0, 1], got {defaults.consensus_threshold}")

    prompts: PromptsConfig | None = None
    prompts_raw = raw.get("prompts")
    if prompts_raw:
        prompts = PromptsConfig(
            opening=prompts_raw["opening"],
            rebuttal=prompts_raw["rebuttal"],
            arbitration=prompts_raw["arbitration"],
        )

    inbox = InboxConfig()
    inbox_raw = raw.get("inbox")
    if inbox_raw:
        inbox = InboxConfig(
            dir=Path(inbox_raw.get("dir", inbox.dir)),
            archive_dir=Path(inbox_raw.get("archive_dir", inbox.archive_dir)),
        )

    return AppConfig(
        defaults=defaults,
        settings=Settings(providers=providers, agents=agents),
        prompts=prompts,
        inbox=inbox,
    )
