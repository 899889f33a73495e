"""
ExamChain Service

The request surface consumed by an HTTP layer or the CLI. Each method maps
one-to-one to a lifecycle or analyzer operation; both share one store,
one ledger and one set of per-vacancy locks.
"""

import logging
from typing import Any, Dict, List, Optional

from .config import Settings
from .fraud.analyzer import FraudAnalyzer
from .fraud.models import FraudAlert
from .interfaces import ExamResultSource, PersistenceStore
from .ledger import LedgerClient, ReceiptLedgerClient
from .locking import VacancyLocks
from .papers.content import ContentSource
from .papers.lifecycle import IntegrityReport, PaperLifecycleManager
from .papers.models import PaperSet
from .store import InMemoryResultSource, JsonFileStore, JsonResultSource

logger = logging.getLogger(__name__)


class ExamChainService:
    """
    Paper lifecycle and fraud analysis behind one object.

    The lifecycle manager and the analyzer share the store, the ledger and
    the per-vacancy locks, so a generate and a detection for the same
    vacancy never interleave.
    """

    def __init__(
        self,
        store: PersistenceStore,
        ledger: LedgerClient,
        results: ExamResultSource,
        content_source: Optional[ContentSource] = None,
        settings: Optional[Settings] = None
    ):
        settings = settings or Settings()
        locks = VacancyLocks()
        self.store = store
        self.ledger = ledger
        self.papers = PaperLifecycleManager(
            store, ledger, content_source, locks=locks, tenant_id=settings.tenant_id
        )
        self.fraud = FraudAnalyzer(
            results,
            store,
            ledger,
            leak_threshold=settings.leak_threshold,
            anomaly_mark_threshold=settings.anomaly_mark_threshold,
            anomaly_ratio_threshold=settings.anomaly_ratio_threshold,
            locks=locks,
            tenant_id=settings.tenant_id
        )

    @classmethod
    def from_settings(cls, settings: Settings, results_path: Optional[str] = None) -> "ExamChainService":
        """
        Wire the file-backed store and the JSONL ledger.
        """
        settings.apply()
        results = JsonResultSource(results_path) if results_path else InMemoryResultSource()
        return cls(
            store=JsonFileStore(settings.store_path),
            ledger=ReceiptLedgerClient(settings.ledger_path, tenant_id=settings.tenant_id),
            results=results,
            settings=settings
        )

    def generate_sets(self, vacancy_id: str) -> List[PaperSet]:
        return self.papers.generate(vacancy_id)

    def lock(self, vacancy_id: str, center_id: str) -> List[PaperSet]:
        return self.papers.lock(vacancy_id, center_id)

    def unlock(self, vacancy_id: str) -> List[PaperSet]:
        return self.papers.unlock(vacancy_id)

    def get_sets(self, vacancy_id: str) -> List[PaperSet]:
        return self.papers.get_sets(vacancy_id)

    def verify(self, paper_set_id: str) -> IntegrityReport:
        return self.papers.check_integrity(paper_set_id)

    def get_alerts(self, vacancy_id: str) -> List[FraudAlert]:
        return self.fraud.get_fraud_alerts(vacancy_id)

    def analyze(self, vacancy_id: str) -> List[FraudAlert]:
        return self.fraud.analyze(vacancy_id)

    def status(self, vacancy_id: str) -> Dict[str, Any]:
        """Set count and lock summary for a vacancy."""
        return {
            "vacancy_id": vacancy_id,
            "set_count": self.papers.count(vacancy_id),
            "all_locked": self.papers.all_locked(vacancy_id),
            "alert_count": len(self.fraud.get_fraud_alerts(vacancy_id))
        }
