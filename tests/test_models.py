"""Tests for polymath/models.py dataclasses."""

from polymath.models import ArbitrationResult, SemanticCluster, SeminarConfig, SeminarRound, SeminarState


def test_arbitration_zero_value():
    result = ArbitrationResult()
    assert result.clusters == []
    assert result.consensus_facts == []
    assert result.next_round_focus == ""
    assert result.convergence_score == 0.0


def test_round_defaults():
    rnd = SeminarRound(round_index=1)
    assert rnd.inputs == []
    assert rnd.status == "pending"
    assert rnd.arbitration == ArbitrationResult()


def test_round_defaults_not_shared():
    first = SeminarRound(round_index=1)
    second = SeminarRound(round_index=2)
    first.inputs.append("x")
    assert second.inputs == []


def test_seminar_config_defaults():
    config = SeminarConfig()
    assert config.max_rounds == 5
    assert config.consensus_threshold == 0.8
    assert config.arbiter_id == ""
    assert config.active_agent_ids == []


def test_seminar_state_defaults():
    state = SeminarState()
    assert state.status == "idle"
    assert state.error is None
    assert state.current_round_index == 0


def test_cluster_fields():
    cluster = SemanticCluster(id="c1", label="Risk", core_argument="Too risky.", supporting_agent_ids=["a1"], strength=70)
    assert cluster.label == "Risk"
    assert cluster.supporting_agent_ids == ["a1"]
    assert cluster.strength == 70
