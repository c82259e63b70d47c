"""Per-round prompt construction. Pure functions of the seminar state."""

import json

from config.config_loader import AgentProfile, PromptsConfig
from polymath.models import SeminarState

MISSING_PREVIOUS_ROUND = "Error: Previous round missing."

OPENING_TEMPLATE = """\
Topic: "{topic}"

Task: Analyze this topic from first principles.
- Provide your unique perspective based on your persona.
- Identify key challenges, facts, and uncertainties.
- Do not hedge; be decisive.
"""

REBUTTAL_TEMPLATE = """\
Topic: "{topic}"

Current Seminar Status (Round {previous_round}):
- Consensus Established: {consensus_facts}
- Viewpoint Clusters: {clusters}

The Conflict Focus for this Round: "{next_round_focus}"

Task:
1. Critically evaluate the conflicting clusters.
2. Defend or refute the current viewpoints.
3. If you agree with the consensus, expand on it. If you disagree, prove why.
"""

ARBITRATION_TEMPLATE = """\
You are the Semantic Arbiter of a research seminar on the topic: "{topic}"
Analyze the following inputs from {count} researchers.

Inputs:
{inputs}

Task:
1. Cluster similar arguments together.
2. Extract facts everyone agrees on.
3. Identify the core question that still divides the group ("nextRoundFocus").
4. Rate convergence (0.0 = chaos, 1.0 = total agreement).

Return strictly valid JSON:
{{
  "clusters": [
    {{ "label": "Short Tag", "coreArgument": "Summary...", "supportingAgentIds": ["id..."], "strength": 80 }}
  ],
  "consensusFacts": ["fact1", "fact2"],
  "nextRoundFocus": "Question...?",
  "convergenceScore": 0.5
}}
"""

DEFAULT_PROMPTS = PromptsConfig(
    opening=OPENING_TEMPLATE,
    rebuttal=REBUTTAL_TEMPLATE,
    arbitration=ARBITRATION_TEMPLATE,
)


def build_agent_prompt(
    agent: AgentProfile,
    state: SeminarState,
    round_index: int,
    prompts: PromptsConfig = DEFAULT_PROMPTS,
) -> str:
    """Build the user prompt an agent receives in the given round.

    Round 1 asks for a first-principles analysis. Later rounds embed the
    previous round's arbitration, looked up by round_index so gaps left by
    failed rounds do not shift the lookup. If that round is absent the
    MISSING_PREVIOUS_ROUND marker is returned instead of raising.

    Templates may reference {agent} (display name). The persona travels as a
    system message, not in this prompt.
    """
    if round_index == 1:
        return prompts.opening.format(topic=state.topic, agent=agent.name)

    previous = next((r for r in state.rounds if r.round_index == round_index - 1), None)
    if previous is None:
        return MISSING_PREVIOUS_ROUND

    arbitration = previous.arbitration
    clusters = [{"label": c.label, "argument": c.core_argument} for c in arbitration.clusters]

    return prompts.rebuttal.format(
        topic=state.topic,
        agent=agent.name,
        round=round_index,
        previous_round=previous.round_index,
        consensus_facts=json.dumps(arbitration.consensus_facts, ensure_ascii=False),
        clusters=json.dumps(clusters, ensure_ascii=False),
        next_round_focus=arbitration.next_round_focus,
    )
