"""Arbiter prompt construction and parsing of the arbiter's JSON verdict."""

import json
import logging
import re
import uuid
from numbers import Real

from config.config_loader import PromptsConfig
from polymath.models import AgentInput, ArbitrationResult, SemanticCluster
from polymath.prompts import DEFAULT_PROMPTS

logger = logging.getLogger(__name__)

DEFAULT_NEXT_ROUND_FOCUS = "Continue discussion"

# ```json ... ``` or just ``` ... ```
_CODE_BLOCK = re.compile(r"```(?:[\w-]+)?\s*(.*?)\s*```", re.DOTALL)


class ArbitrationParseError(Exception):
    """Raised when the arbiter output is not a usable arbitration object."""

    def __init__(self, detail: str, payload: str = "") -> None:
        self.detail = detail
        self.payload = payload
        super().__init__("Arbiter failed to produce valid JSON.")


def build_arbiter_prompt(
    topic: str,
    inputs: list[AgentInput],
    prompts: PromptsConfig = DEFAULT_PROMPTS,
) -> str:
    """Embed the topic and every agent's input, labeled by agent id."""
    block = "\n\n".join(f"[Agent {i.agent_id}]: {i.content}" for i in inputs)
    return prompts.arbitration.format(topic=topic, count=len(inputs), inputs=block)


def clean_json_output(text: str) -> str:
    """Strip markdown fences and surrounding prose from a model's JSON answer."""
    clean = text.strip()

    match = _CODE_BLOCK.search(clean)
    if match and match.group(1):
        clean = match.group(1).strip()

    first = clean.find("{")
    last = clean.rfind("}")
    if first != -1 and last > first:
        clean = clean[first:last + 1]

    return clean


def _is_number(value: object) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


def _parse_cluster(raw: object, payload: str) -> SemanticCluster:
    if not isinstance(raw, dict):
        raise ArbitrationParseError(f"cluster is not an object: {raw!r}", payload)

    supporters = raw.get("supportingAgentIds") or []
    if not isinstance(supporters, list):
        supporters = []

    strength = raw.get("strength", 0)
    if not _is_number(strength):
        strength = 0

    # Ids from the model are not trusted.
    return SemanticCluster(
        id=uuid.uuid4().hex[:8],
        label=str(raw.get("label") or ""),
        core_argument=str(raw.get("coreArgument") or ""),
        supporting_agent_ids=[str(s) for s in supporters],
        strength=strength,
    )


def parse_arbitration(raw_output: str) -> ArbitrationResult:
    """Parse the arbiter's raw answer into an ArbitrationResult.

    Raises:
        ArbitrationParseError: If the JSON is malformed, is not an object,
            lacks a clusters array, or has wrongly typed fields.
    """
    payload = clean_json_output(raw_output)

    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise ArbitrationParseError(f"invalid JSON: {exc}", payload) from exc

    if not isinstance(data, dict):
        raise ArbitrationParseError("top-level value is not an object", payload)

    clusters_raw = data.get("clusters")
    if not isinstance(clusters_raw, list):
        raise ArbitrationParseError("'clusters' is missing or not an array", payload)

    facts = data.get("consensusFacts") or []
    if not isinstance(facts, list):
        raise ArbitrationParseError("'consensusFacts' is not an array", payload)

    score = data.get("convergenceScore") or 0
    if not _is_number(score):
        raise ArbitrationParseError(f"'convergenceScore' is not a number: {score!r}", payload)
    if not 0.0 <= score <= 1.0:
        logger.warning("Arbiter returned out-of-range convergence score %s; keeping it as-is", score)

    return ArbitrationResult(
        clusters=[_parse_cluster(c, payload) for c in clusters_raw],
        consensus_facts=[str(f) for f in facts],
        next_round_focus=str(data.get("nextRoundFocus") or DEFAULT_NEXT_ROUND_FOCUS),
        convergence_score=float(score),
    )


def try_parse_arbitration(raw_output: str) -> ArbitrationResult | ArbitrationParseError:
    """Like parse_arbitration, but returns the parse error instead of raising."""
    try:
        return parse_arbitration(raw_output)
    except ArbitrationParseError as exc:
        logger.warning("Failed to parse arbiter JSON (%s): %.200s", exc.detail, exc.payload)
        return exc
