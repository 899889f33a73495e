"""
Tests for simulation scenarios.

These tests validate the mandatory scenarios for ExamChain.
"""

import random

import pytest
from examchain.core import ANOMALY_MARK_THRESHOLD
from examchain.sim import (
    SCENARIOS,
    SimConfig,
    generate_results,
    inject_high_scorers,
    inject_leak_cluster,
    run_all_scenarios,
    run_scenario,
)


class TestSimConfig:
    """Tests for simulation configuration."""

    def test_default_config(self):
        config = SimConfig()
        assert config.n_candidates == 1000
        assert config.leak_size == 0
        assert config.high_scorers == 0
        assert config.random_seed == 42


class TestDataGeneration:
    """Tests for synthetic result generation."""

    def test_generate_results(self):
        results = generate_results("VAC1", SimConfig(n_candidates=50, n_questions=20), random.Random(1))

        assert len(results) == 50
        assert len({r.answer_pattern_hash for r in results}) == 50
        assert all(r.marks <= ANOMALY_MARK_THRESHOLD for r in results)

    def test_inject_leak_cluster(self):
        rng = random.Random(1)
        results = generate_results("VAC1", SimConfig(n_candidates=50, n_questions=20), rng)
        leaked = inject_leak_cluster(results, 30, rng)

        assert len({r.answer_pattern_hash for r in leaked[:30]}) == 1
        assert len({r.answer_pattern_hash for r in leaked}) == 21

    def test_inject_high_scorers(self):
        rng = random.Random(1)
        results = generate_results("VAC1", SimConfig(n_candidates=50, n_questions=20), rng)
        skewed = inject_high_scorers(results, 10, rng)

        assert sum(1 for r in skewed if r.marks > ANOMALY_MARK_THRESHOLD) == 10


class TestScenarios:
    """Tests for named scenarios."""

    @pytest.mark.parametrize("name", sorted(SCENARIOS))
    def test_scenario_passes(self, name):
        outcome = run_scenario(name)
        assert outcome.passed, outcome.violations
        assert outcome.verified_sets == 5
        assert outcome.all_locked is True

    def test_leak_scenario_alert(self):
        outcome = run_scenario("LEAK")
        assert [(a["alert_type"], a["suspect_count"]) for a in outcome.alerts] == [("PAPER_LEAK", 520)]

    def test_unknown_scenario(self):
        with pytest.raises(ValueError):
            run_scenario("NOPE")

    def test_run_all(self):
        outcomes = run_all_scenarios()
        assert set(outcomes) == set(SCENARIOS)
        assert all(o.passed for o in outcomes.values())
