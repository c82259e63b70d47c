"""Tests for polymath/output.py."""

from pathlib import Path

import pytest

from polymath.models import (
    AgentInput,
    ArbitrationResult,
    SemanticCluster,
    SeminarConfig,
    SeminarRound,
    SeminarState,
)
from polymath.output import _slug, last_completed_round, print_report, print_round_summary, render_report, save_report


def test_slug_basic():
    assert _slug("Should we use YAML or JSON?") == "should-we-use-yaml-or-json"


def test_slug_max_len():
    assert len(_slug("a" * 100)) <= 40


def test_slug_special_chars():
    result = _slug("API vs. SDK (2024)")
    assert "." not in result
    assert "(" not in result
    assert ")" not in result


def _completed_round(index: int, score: float, facts: list[str]) -> SeminarRound:
    return SeminarRound(
        round_index=index,
        inputs=[AgentInput("a1", f"Agent 1 view {index}"), AgentInput("a2", f"Agent 2 view {index}")],
        arbitration=ArbitrationResult(
            clusters=[
                SemanticCluster(
                    id=f"c{index}",
                    label=f"Perspective {index}",
                    core_argument=f"Core argument {index}",
                    supporting_agent_ids=["a1", "a2"],
                    strength=60,
                )
            ],
            consensus_facts=facts,
            next_round_focus=f"Focus {index}",
            convergence_score=score,
        ),
        status="completed",
    )


@pytest.fixture
def finished_state(sample_seminar_config: SeminarConfig) -> SeminarState:
    return SeminarState(
        topic="Should we use YAML or JSON?",
        rounds=[_completed_round(1, 0.4, ["Early fact"]), _completed_round(2, 0.9, ["Both parse", "JSON is stricter"])],
        status="completed",
        current_round_index=2,
        config=sample_seminar_config,
    )


def test_last_completed_round_skips_failed(finished_state):
    failed = SeminarRound(round_index=3, status="failed")
    state = SeminarState(rounds=[*finished_state.rounds, failed])

    assert last_completed_round(state).round_index == 2
    assert last_completed_round(SeminarState()) is None


def test_render_report_summary(finished_state, sample_settings):
    report = render_report(finished_state, sample_settings.agents)

    assert report.startswith("# Final Consensus: Should we use YAML or JSON?")
    assert "**Status:** completed" in report
    assert "**Panel:** Agent 1, Agent 2" in report
    assert "**Arbiter:** Arbiter" in report
    assert "After 2 rounds of debate" in report
    assert "**90%**" in report


def test_render_report_uses_final_round(finished_state, sample_settings):
    report = render_report(finished_state, sample_settings.agents)

    assert "- Both parse" in report
    assert "- JSON is stricter" in report
    assert "- Early fact" not in report
    assert "### Perspective 2" in report
    assert "### Perspective 1" not in report


def test_render_report_transcript(finished_state, sample_settings):
    report = render_report(finished_state, sample_settings.agents)

    assert "### Round 1 (completed)" in report
    assert "### Round 2 (completed)" in report
    assert "#### Agent 1" in report
    assert "Agent 2 view 1" in report
    assert "Next focus: Focus 2" in report


def test_render_report_paused_with_error(sample_seminar_config, sample_settings):
    state = SeminarState(
        topic="T",
        rounds=[SeminarRound(round_index=1, inputs=[AgentInput("a1", "partial")], status="failed")],
        status="paused",
        current_round_index=1,
        config=sample_seminar_config,
        error="LLM Error [Agent 2]: HTTP 500: boom",
    )

    report = render_report(state, sample_settings.agents)

    assert "**Status:** paused" in report
    assert "**0%**" in report
    assert "No complete consensus facts recorded." in report
    assert "## Error" in report
    assert "HTTP 500: boom" in report
    assert "### Round 1 (failed)" in report


def test_save_report_creates_file(tmp_path: Path, finished_state, sample_settings):
    saved = save_report(finished_state, sample_settings.agents, tmp_path / "nested" / "output")

    assert saved.exists()
    assert saved.suffix == ".md"
    assert saved.name.endswith("_should-we-use-yaml-or-json.md")
    assert "# Final Consensus" in saved.read_text(encoding="utf-8")


def test_save_report_slug_override(tmp_path: Path, finished_state, sample_settings):
    saved = save_report(finished_state, sample_settings.agents, tmp_path, slug_override="my-topic")
    assert saved.name.endswith("_my-topic.md")


def test_print_helpers_do_not_crash(finished_state, sample_settings):
    for rnd in finished_state.rounds:
        print_round_summary(rnd, sample_settings.agents)
    print_report(finished_state, sample_settings.agents)
