"""Integration tests: real API calls, no mocks. Requires OPENAI_API_KEY in .env."""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

load_dotenv()

pytestmark = pytest.mark.integration

if not os.environ.get("OPENAI_API_KEY", "").strip():
    pytestmark = [pytest.mark.integration, pytest.mark.skip(reason="OPENAI_API_KEY not set")]


async def test_full_seminar_pipeline(tmp_path: Path):
    """Run a real one-round seminar with the bundled OpenAI agents, verify no crash."""
    from config.config_loader import load_config
    from polymath.engine import SeminarEngine
    from polymath.llm import LLMClient
    from polymath.models import SeminarConfig
    from polymath.output import save_report
    from polymath.state import SeminarStore

    config = load_config()
    settings = config.settings
    store = SeminarStore()
    engine = SeminarEngine(
        get_state=store.get,
        update_state=store.update,
        get_settings=lambda: settings,
        llm=LLMClient(),
    )

    await engine.start_seminar(
        "Should a small team use a monorepo or separate repos for a Python microservices project?",
        SeminarConfig(
            max_rounds=1,
            consensus_threshold=0.99,
            arbiter_id="arbiter",
            active_agent_ids=["skeptic", "visionary"],
        ),
    )

    state = store.get()
    assert state.error is None, state.error
    assert state.status == "completed"
    [rnd] = state.rounds
    assert rnd.status == "completed"
    assert [i.agent_id for i in rnd.inputs] == ["skeptic", "visionary"]
    assert all(i.content for i in rnd.inputs)
    assert 0.0 <= rnd.arbitration.convergence_score <= 1.0
    assert rnd.arbitration.next_round_focus

    saved = save_report(state, settings.agents, tmp_path / "output")
    content = saved.read_text(encoding="utf-8")
    assert "# Final Consensus" in content
    assert "**Panel:** The Skeptic, The Visionary" in content
