"""Pure dataclasses for the seminar runtime state. No logic, no deps."""

from dataclasses import dataclass, field
from typing import Literal

RoundStatus = Literal["pending", "processing", "completed", "failed"]
SeminarStatus = Literal["idle", "running", "paused", "completed"]


@dataclass
class ChatMessage:
    role: str              # "system", "user" or "assistant"
    content: str


@dataclass
class SeminarConfig:
    max_rounds: int = 5
    consensus_threshold: float = 0.8   # 0.0 - 1.0
    arbiter_id: str = ""               # AgentProfile id; its connection is used with temperature forced to 0
    active_agent_ids: list[str] = field(default_factory=list)


@dataclass
class SemanticCluster:
    id: str
    label: str
    core_argument: str
    supporting_agent_ids: list[str] = field(default_factory=list)
    strength: float = 0            # 0 - 100


@dataclass
class ArbitrationResult:
    clusters: list[SemanticCluster] = field(default_factory=list)
    consensus_facts: list[str] = field(default_factory=list)
    next_round_focus: str = ""
    convergence_score: float = 0.0     # 0.0 = chaos, 1.0 = total agreement


@dataclass
class AgentInput:
    agent_id: str
    content: str           # raw output from the agent


@dataclass
class SeminarRound:
    round_index: int       # 1-based
    inputs: list[AgentInput] = field(default_factory=list)
    arbitration: ArbitrationResult = field(default_factory=ArbitrationResult)
    status: RoundStatus = "pending"


@dataclass
class SeminarState:
    topic: str = ""
    rounds: list[SeminarRound] = field(default_factory=list)
    status: SeminarStatus = "idle"
    current_round_index: int = 0
    config: SeminarConfig = field(default_factory=SeminarConfig)
    error: str | None = None
