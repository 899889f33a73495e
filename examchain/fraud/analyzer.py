"""
Fraud Analyzer

Runs the leak-cluster and marks-anomaly detectors for a vacancy, records
each new finding on the ledger and persists it as a FraudAlert.

Findings are keyed by (vacancy_id, alert_type, pattern_hash). A finding
whose key is already stored is returned as-is: no second ledger event, no
second alert. The ledger submission happens before the store write and
carries a token derived from the key, so a retry after a storage failure
reuses the original ledger reference.

The two keys differ in what they capture. A marks-anomaly pattern encodes
the high-scorer count and the total, so a changed statistic is a new
finding. A leak pattern is the shared answer fingerprint alone: a cluster
that grows after its alert was stored keeps the stored alert and its
original suspect_count, and the drift is logged at WARNING.
"""

import logging
from typing import Dict, List, Optional, Tuple

from ..core import (
    ANOMALY_MARK_THRESHOLD,
    ANOMALY_RATIO_THRESHOLD,
    EVENT_DETECT_MARKS_ANOMALY,
    EVENT_DETECT_PAPER_LEAK,
    LEAK_THRESHOLD,
    TENANT_ID,
    emit_receipt,
    fingerprint,
    require,
)
from ..interfaces import ExamResultSource, PersistenceStore
from ..ledger import LedgerClient
from ..locking import VacancyLocks
from .detectors import evidence_hash, high_scorer_ratio, leak_clusters
from .models import AlertType, FraudAlert

logger = logging.getLogger(__name__)


class FraudAnalyzer:
    """Statistical fraud detection over exam results."""

    def __init__(
        self,
        results: ExamResultSource,
        store: PersistenceStore,
        ledger: LedgerClient,
        leak_threshold: int = LEAK_THRESHOLD,
        anomaly_mark_threshold: float = ANOMALY_MARK_THRESHOLD,
        anomaly_ratio_threshold: float = ANOMALY_RATIO_THRESHOLD,
        locks: Optional[VacancyLocks] = None,
        tenant_id: str = TENANT_ID
    ):
        self.results = results
        self.store = store
        self.ledger = ledger
        self.leak_threshold = leak_threshold
        self.anomaly_mark_threshold = anomaly_mark_threshold
        self.anomaly_ratio_threshold = anomaly_ratio_threshold
        self.locks = locks or VacancyLocks()
        self.tenant_id = tenant_id

    def _existing(self, vacancy_id: str) -> Dict[Tuple, FraudAlert]:
        return {a.dedup_key: a for a in self.store.find_by_vacancy(FraudAlert, vacancy_id)}

    def _record(
        self,
        event_name: str,
        vacancy_id: str,
        alert_type: AlertType,
        suspect_count: int,
        pattern_hash: str,
        evidence: str,
        existing: Dict[Tuple, FraudAlert],
        created: List[FraudAlert]
    ) -> FraudAlert:
        key = (vacancy_id, alert_type, pattern_hash)
        if key in existing:
            alert = existing[key]
            if alert.suspect_count != suspect_count:
                logger.warning(
                    "%s %s for vacancy %s now has %d suspects, recorded with %d",
                    alert_type.value, alert.id, vacancy_id, suspect_count, alert.suspect_count
                )
            else:
                logger.info("%s already recorded for vacancy %s: %s", alert_type.value, vacancy_id, alert.id)
            return alert

        token = f"{event_name}:{vacancy_id}:{pattern_hash}"
        ledger_ref = self.ledger.submit(event_name, vacancy_id, suspect_count, pattern_hash, token=token)

        alert = FraudAlert.create(
            vacancy_id=vacancy_id,
            alert_type=alert_type,
            suspect_count=suspect_count,
            pattern_hash=pattern_hash,
            evidence_hash=evidence,
            ledger_ref=ledger_ref
        )
        self.store.save(alert)
        existing[key] = alert
        created.append(alert)
        return alert

    def _emit_receipts(self, created: List[FraudAlert]) -> None:
        for alert in created:
            emit_receipt("fraud_alert", {
                "alert_id": alert.id,
                "vacancy_id": alert.vacancy_id,
                "alert_type": alert.alert_type.value,
                "suspect_count": alert.suspect_count,
                "pattern_hash": alert.pattern_hash,
                "evidence_hash": alert.evidence_hash,
                "ledger_ref": alert.ledger_ref
            }, self.tenant_id)

    def detect_paper_leak(self, vacancy_id: str) -> List[FraudAlert]:
        """
        One PAPER_LEAK alert per answer-pattern group of leak_threshold or
        more candidates. Groups are never merged.
        """
        vacancy_id = require(vacancy_id, "vacancy_id")
        created: List[FraudAlert] = []
        with self.locks.hold(vacancy_id), self.store.transaction():
            results = self.results.find_by_vacancy(vacancy_id)
            clusters = leak_clusters(results, self.leak_threshold)
            existing = self._existing(vacancy_id)

            alerts = []
            for pattern, members in clusters:
                logger.warning(
                    "Paper leak suspected for vacancy %s: %d candidates share pattern %s",
                    vacancy_id, len(members), pattern
                )
                alerts.append(self._record(
                    EVENT_DETECT_PAPER_LEAK,
                    vacancy_id,
                    AlertType.PAPER_LEAK,
                    len(members),
                    pattern,
                    evidence_hash(members),
                    existing,
                    created
                ))

        self._emit_receipts(created)
        logger.info("Leak detection for %s: %d results, %d alerts", vacancy_id, len(results), len(alerts))
        return alerts

    def detect_marks_anomaly(self, vacancy_id: str) -> List[FraudAlert]:
        """
        At most one MARKS_ANOMALY alert, raised when the share of candidates
        above anomaly_mark_threshold is strictly greater than
        anomaly_ratio_threshold. No results, no alert.
        """
        vacancy_id = require(vacancy_id, "vacancy_id")
        created: List[FraudAlert] = []
        with self.locks.hold(vacancy_id), self.store.transaction():
            results = self.results.find_by_vacancy(vacancy_id)
            high, total, ratio = high_scorer_ratio(results, self.anomaly_mark_threshold)

            if total == 0 or ratio <= self.anomaly_ratio_threshold:
                logger.info("Marks anomaly check for %s: %d/%d above %s", vacancy_id, high, total,
                            self.anomaly_mark_threshold)
                return []

            logger.warning(
                "Marks anomaly for vacancy %s: %d of %d (%.1f%%) scored above %s",
                vacancy_id, high, total, ratio * 100, self.anomaly_mark_threshold
            )
            pattern = fingerprint(
                f"{AlertType.MARKS_ANOMALY.value}:{vacancy_id}:{self.anomaly_mark_threshold}:{high}:{total}"
            )
            high_scorers = [r for r in results if r.marks > self.anomaly_mark_threshold]
            alert = self._record(
                EVENT_DETECT_MARKS_ANOMALY,
                vacancy_id,
                AlertType.MARKS_ANOMALY,
                high,
                pattern,
                evidence_hash(high_scorers),
                self._existing(vacancy_id),
                created
            )
        self._emit_receipts(created)
        return [alert]

    def analyze(self, vacancy_id: str) -> List[FraudAlert]:
        """Run leak detection then marks-anomaly detection."""
        alerts = self.detect_paper_leak(vacancy_id) + self.detect_marks_anomaly(vacancy_id)
        if alerts:
            logger.warning("Fraud analysis for %s: %d alerts", vacancy_id, len(alerts))
        else:
            logger.info("Fraud analysis for %s: no fraud detected", vacancy_id)
        return alerts

    def get_fraud_alerts(self, vacancy_id: str) -> List[FraudAlert]:
        """Stored alerts for a vacancy; empty when none."""
        return self.store.find_by_vacancy(FraudAlert, require(vacancy_id, "vacancy_id"))
