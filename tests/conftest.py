"""
Pytest configuration and fixtures for ExamChain tests.
"""

import pytest

from examchain import core
from examchain.core import PersistenceError
from examchain.fraud.analyzer import FraudAnalyzer
from examchain.fraud.models import ExamResult
from examchain.ledger import InMemoryLedgerClient
from examchain.papers.lifecycle import PaperLifecycleManager
from examchain.store import InMemoryResultSource, InMemoryStore


@pytest.fixture(autouse=True)
def temp_ledger(tmp_path, monkeypatch):
    """Send every receipt to a temporary ledger file."""
    ledger_path = str(tmp_path / "receipts.jsonl")
    monkeypatch.setattr(core, "RECEIPTS_LEDGER_PATH", ledger_path)
    return ledger_path


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def ledger():
    return InMemoryLedgerClient()


@pytest.fixture
def manager(store, ledger):
    return PaperLifecycleManager(store, ledger)


@pytest.fixture
def results():
    return InMemoryResultSource()


@pytest.fixture
def analyzer(results, store, ledger):
    return FraudAnalyzer(results, store, ledger)


class FlakyStore(InMemoryStore):
    """InMemoryStore whose commit fails a set number of times."""

    def __init__(self, failures: int = 1):
        super().__init__()
        self.failures = failures

    def _commit(self) -> None:
        if self.failures > 0:
            self.failures -= 1
            raise PersistenceError("disk full", retryable=True)


@pytest.fixture
def flaky_store():
    return FlakyStore()


def make_results(vacancy_id, n, shared=0, high=0, pattern="LEAKED"):
    """
    Build n results: the first `shared` share one pattern, the rest are
    pairwise distinct; the last `high` candidates score 95, others 50.
    """
    out = []
    for i in range(n):
        out.append(ExamResult(
            candidate_id=f"CAND{i:05d}",
            vacancy_id=vacancy_id,
            marks=95 if i >= n - high else 50,
            answer_pattern_hash=core.fingerprint(pattern) if i < shared else core.fingerprint(f"unique-{i}")
        ))
    return out


@pytest.fixture
def sample_result():
    """Sample raw exam result record."""
    return {
        "candidate_id": "CAND_TEST_001",
        "vacancy_id": "VAC-2024-001",
        "marks": 72,
        "answers": ["A", "C", "B", None, "D"]
    }


@pytest.fixture
def result_factory():
    """The make_results builder."""
    return make_results
