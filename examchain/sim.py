"""
ExamChain Scenario Simulation Harness

Validates paper lifecycle and fraud detection end to end on synthetic
exam results before production deployment.

Scenarios:
1. BASELINE: Random answers and marks, no alerts, all sets verify
2. LEAK: 520 of 1000 candidates share one answer vector
3. ANOMALY: 310 of 1000 candidates score above 90
4. BOUNDARY: 499-candidate cluster and 290 high scorers, no alerts
"""

import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .core import (
    ANOMALY_MARK_THRESHOLD,
    QUESTIONS_PER_PAPER,
    emit_receipt,
)
from .fraud.ingest import answer_pattern_hash
from .fraud.models import AlertType, ExamResult
from .ledger import InMemoryLedgerClient
from .service import ExamChainService
from .store import InMemoryResultSource, InMemoryStore

OPTIONS = ("A", "B", "C", "D")


@dataclass
class SimConfig:
    """Simulation configuration."""
    n_candidates: int = 1000
    n_questions: int = QUESTIONS_PER_PAPER
    leak_size: int = 0
    high_scorers: int = 0
    center_id: str = "CENTER-001"
    random_seed: int = 42


@dataclass
class ScenarioResult:
    """Outcome of one scenario run."""
    name: str
    vacancy_id: str
    alerts: List[Dict] = field(default_factory=list)
    verified_sets: int = 0
    all_locked: bool = False
    violations: List[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.violations


SCENARIOS: Dict[str, SimConfig] = {
    "BASELINE": SimConfig(),
    "LEAK": SimConfig(leak_size=520),
    "ANOMALY": SimConfig(high_scorers=310),
    "BOUNDARY": SimConfig(leak_size=499, high_scorers=290),
}

EXPECTED_ALERTS: Dict[str, Dict[str, int]] = {
    "BASELINE": {},
    "LEAK": {AlertType.PAPER_LEAK.value: 520},
    "ANOMALY": {AlertType.MARKS_ANOMALY.value: 310},
    "BOUNDARY": {},
}


def random_answers(rng: random.Random, n_questions: int) -> List[str]:
    return [rng.choice(OPTIONS) for _ in range(n_questions)]


def generate_results(vacancy_id: str, config: SimConfig, rng: random.Random) -> List[ExamResult]:
    """
    Generate candidates with independent random answers and marks at or
    below the anomaly threshold.
    """
    results = []
    for i in range(config.n_candidates):
        answers = random_answers(rng, config.n_questions)
        results.append(ExamResult(
            candidate_id=f"CAND{i:06d}",
            vacancy_id=vacancy_id,
            marks=rng.randint(20, int(ANOMALY_MARK_THRESHOLD)),
            answer_pattern_hash=answer_pattern_hash(answers)
        ))
    return results


def inject_leak_cluster(results: List[ExamResult], size: int, rng: random.Random) -> List[ExamResult]:
    """Give the first size candidates one shared answer vector."""
    if size <= 0:
        return results
    leaked = answer_pattern_hash(random_answers(rng, QUESTIONS_PER_PAPER))
    return [
        ExamResult(r.candidate_id, r.vacancy_id, r.marks, leaked) if i < size else r
        for i, r in enumerate(results)
    ]


def inject_high_scorers(results: List[ExamResult], count: int, rng: random.Random) -> List[ExamResult]:
    """Raise the marks of the last count candidates above the threshold."""
    if count <= 0:
        return results
    start = len(results) - count
    return [
        ExamResult(r.candidate_id, r.vacancy_id, rng.randint(int(ANOMALY_MARK_THRESHOLD) + 1, 100),
                   r.answer_pattern_hash) if i >= start else r
        for i, r in enumerate(results)
    ]


def run_scenario(name: str, config: Optional[SimConfig] = None) -> ScenarioResult:
    """
    Run one named scenario through an in-memory service.

    Args:
        name: Scenario name (key of SCENARIOS)
        config: Override for the scenario's configuration

    Returns:
        ScenarioResult; violations list what did not match expectations
    """
    if name not in SCENARIOS:
        raise ValueError(f"Unknown scenario: {name}")
    config = config or SCENARIOS[name]
    rng = random.Random(config.random_seed)
    vacancy_id = f"SIM-{name}-{config.random_seed}"

    results = generate_results(vacancy_id, config, rng)
    results = inject_leak_cluster(results, config.leak_size, rng)
    results = inject_high_scorers(results, config.high_scorers, rng)

    service = ExamChainService(
        store=InMemoryStore(),
        ledger=InMemoryLedgerClient(),
        results=InMemoryResultSource(results)
    )
    outcome = ScenarioResult(name=name, vacancy_id=vacancy_id)

    sets = service.generate_sets(vacancy_id)
    service.lock(vacancy_id, config.center_id)
    outcome.all_locked = service.papers.all_locked(vacancy_id)
    outcome.verified_sets = sum(1 for s in sets if service.papers.verify(s.id))

    alerts = service.analyze(vacancy_id)
    outcome.alerts = [a.to_dict() for a in alerts]

    if outcome.verified_sets != len(sets):
        outcome.violations.append(f"verified {outcome.verified_sets} of {len(sets)} sets")
    if not outcome.all_locked:
        outcome.violations.append("sets not locked")

    found = {a.alert_type.value: a.suspect_count for a in alerts}
    expected = EXPECTED_ALERTS.get(name, {}) if config is SCENARIOS.get(name) else None
    if expected is not None and found != expected:
        outcome.violations.append(f"expected alerts {expected}, found {found}")

    emit_receipt("sim_scenario", {
        "scenario": name,
        "vacancy_id": vacancy_id,
        "alert_count": len(alerts),
        "passed": outcome.passed,
        "violations": outcome.violations
    })

    return outcome


def run_all_scenarios() -> Dict[str, ScenarioResult]:
    """Run every scenario. All must pass before deployment."""
    return {name: run_scenario(name) for name in SCENARIOS}
