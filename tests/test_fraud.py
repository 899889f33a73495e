"""
Tests for Fraud module.
"""

import pytest
from examchain.core import (
    EVENT_DETECT_MARKS_ANOMALY,
    EVENT_DETECT_PAPER_LEAK,
    LedgerUnavailable,
    PersistenceError,
    ValidationError,
    fingerprint,
    load_receipts,
)
from examchain.fraud.analyzer import FraudAnalyzer
from examchain.fraud.detectors import evidence_hash, group_by_pattern, high_scorer_ratio, leak_clusters
from examchain.fraud.ingest import answer_pattern_hash, batch_ingest, ingest_result, validate_result
from examchain.fraud.models import AlertType, ExamResult, FraudAlert
from examchain.ledger import InMemoryLedgerClient
from examchain.papers.models import PaperSet


class TestResultValidation:
    """Tests for exam result validation."""

    def test_validate_valid_result(self, sample_result):
        assert validate_result(sample_result) == (True, "valid")

    def test_validate_missing_marks(self, sample_result):
        del sample_result["marks"]
        valid, reason = validate_result(sample_result)
        assert valid is False
        assert "marks" in reason

    def test_validate_negative_marks(self, sample_result):
        sample_result["marks"] = -1
        valid, reason = validate_result(sample_result)
        assert valid is False
        assert "negative" in reason

    def test_validate_boolean_marks(self, sample_result):
        sample_result["marks"] = True
        assert validate_result(sample_result)[0] is False

    def test_validate_short_pattern_hash(self, sample_result):
        sample_result["answer_pattern_hash"] = "abc"
        valid, reason = validate_result(sample_result)
        assert valid is False
        assert "64" in reason

    def test_validate_non_hex_pattern_hash(self, sample_result):
        sample_result["answer_pattern_hash"] = "z" * 64
        assert validate_result(sample_result)[0] is False
        sample_result["answer_pattern_hash"] = "AB" * 32
        assert validate_result(sample_result)[0] is False

    def test_validate_missing_pattern(self, sample_result):
        del sample_result["answers"]
        valid, reason = validate_result(sample_result)
        assert valid is False
        assert "answer_pattern_hash" in reason


class TestResultIngestion:
    """Tests for exam result ingestion."""

    def test_ingest_hashes_answers(self, sample_result):
        result = ingest_result(sample_result)
        assert result.answer_pattern_hash == answer_pattern_hash(sample_result["answers"])
        assert result.marks == 72

    def test_ingest_keeps_given_hash(self, sample_result):
        sample_result["answer_pattern_hash"] = "ab" * 32
        assert ingest_result(sample_result).answer_pattern_hash == "ab" * 32

    def test_ingest_invalid_raises(self):
        with pytest.raises(ValidationError):
            ingest_result({"candidate_id": "C1"})

    def test_answer_pattern_normalized(self):
        assert answer_pattern_hash(["a", " b"]) == answer_pattern_hash(["A", "B"])
        assert answer_pattern_hash(["A", None]) != answer_pattern_hash(["A", "None"])

    def test_batch_ingest(self, sample_result, temp_ledger):
        bad = {"candidate_id": "C2", "vacancy_id": "VAC-2024-001"}
        results, receipt = batch_ingest([sample_result, bad])

        assert len(results) == 1
        assert receipt["receipt_type"] == "result_batch_ingest"
        assert receipt["result_count"] == 1
        assert receipt["error_count"] == 1
        assert receipt["errors"][0]["index"] == 1


class TestDetectors:
    """Tests for pure detection statistics."""

    def test_group_by_pattern(self, result_factory):
        results = result_factory("V", 10, shared=4)
        groups = group_by_pattern(results)
        assert len(groups) == 7
        assert len(groups[fingerprint("LEAKED")]) == 4

    def test_leak_clusters_threshold_inclusive(self, result_factory):
        results = result_factory("V", 10, shared=5)
        assert len(leak_clusters(results, threshold=5)) == 1
        assert leak_clusters(results, threshold=6) == []

    def test_leak_clusters_largest_first(self):
        results = [ExamResult(f"C{i}", "V", 50, "small") for i in range(3)]
        results += [ExamResult(f"D{i}", "V", 50, "big") for i in range(4)]
        assert [p for p, _ in leak_clusters(results, threshold=3)] == ["big", "small"]

    def test_high_scorer_ratio(self, result_factory):
        assert high_scorer_ratio(result_factory("V", 10, high=3)) == (3, 10, 0.3)

    def test_high_scorer_ratio_strictly_above(self):
        results = [ExamResult("C1", "V", 90, "p1"), ExamResult("C2", "V", 91, "p2")]
        assert high_scorer_ratio(results)[0] == 1

    def test_high_scorer_ratio_empty(self):
        assert high_scorer_ratio([]) == (0, 0, 0.0)

    def test_evidence_hash_order_independent(self):
        a = [ExamResult("C1", "V", 1, "p"), ExamResult("C2", "V", 1, "p")]
        assert evidence_hash(a) == evidence_hash(list(reversed(a)))


class TestPaperLeakDetection:
    """Tests for leak-cluster detection."""

    def test_single_cluster(self, analyzer, results, ledger, result_factory):
        results.extend(result_factory("VAC1", 1000, shared=520))

        alerts = analyzer.detect_paper_leak("VAC1")

        assert len(alerts) == 1
        assert alerts[0].alert_type is AlertType.PAPER_LEAK
        assert alerts[0].suspect_count == 520
        assert alerts[0].pattern_hash == fingerprint("LEAKED")
        event = ledger.events_named(EVENT_DETECT_PAPER_LEAK)[0]
        assert event["args"] == ["VAC1", 520, fingerprint("LEAKED")]
        assert alerts[0].ledger_ref == event["tx_ref"]

    def test_all_distinct(self, analyzer, results, result_factory):
        results.extend(result_factory("VAC1", 1000))
        assert analyzer.detect_paper_leak("VAC1") == []

    def test_groups_never_merged(self, results, store, ledger):
        results.extend([ExamResult(f"A{i}", "VAC1", 50, "p1") for i in range(3)])
        results.extend([ExamResult(f"B{i}", "VAC1", 50, "p2") for i in range(4)])
        analyzer = FraudAnalyzer(results, store, ledger, leak_threshold=3)

        alerts = analyzer.detect_paper_leak("VAC1")

        assert sorted(a.suspect_count for a in alerts) == [3, 4]
        assert len(store.find_by_vacancy(FraudAlert, "VAC1")) == 2

    def test_other_vacancy_ignored(self, analyzer, results, result_factory):
        results.extend(result_factory("VAC2", 600, shared=600))
        assert analyzer.detect_paper_leak("VAC1") == []

    def test_persists_alert(self, analyzer, results, store, result_factory):
        results.extend(result_factory("VAC1", 600, shared=550))
        alert = analyzer.detect_paper_leak("VAC1")[0]
        assert store.find_by_id(FraudAlert, alert.id) == alert

    def test_does_not_touch_paper_sets(self, manager, analyzer, results, store, result_factory):
        sets = manager.generate("VAC1")
        results.extend(result_factory("VAC1", 600, shared=550))

        analyzer.analyze("VAC1")

        assert store.find_by_vacancy(PaperSet, "VAC1") == sets

    def test_grown_cluster_keeps_stored_alert(self, analyzer, results, ledger, result_factory, caplog):
        results.extend(result_factory("VAC1", 1000, shared=520))
        first = analyzer.detect_paper_leak("VAC1")[0]

        results.extend([ExamResult(f"LATE{i}", "VAC1", 50, fingerprint("LEAKED")) for i in range(180)])
        with caplog.at_level("WARNING", logger="examchain.fraud.analyzer"):
            again = analyzer.detect_paper_leak("VAC1")[0]

        assert again == first
        assert again.suspect_count == 520
        assert len(ledger.events) == 1
        assert "now has 700 suspects, recorded with 520" in caplog.text


class TestMarksAnomalyDetection:
    """Tests for marks-anomaly detection."""

    def test_above_ratio(self, analyzer, results, ledger, result_factory):
        results.extend(result_factory("VAC1", 1000, high=310))

        alerts = analyzer.detect_marks_anomaly("VAC1")

        assert len(alerts) == 1
        assert alerts[0].alert_type is AlertType.MARKS_ANOMALY
        assert alerts[0].suspect_count == 310
        assert len(ledger.events_named(EVENT_DETECT_MARKS_ANOMALY)) == 1

    def test_below_ratio(self, analyzer, results, result_factory):
        results.extend(result_factory("VAC1", 1000, high=290))
        assert analyzer.detect_marks_anomaly("VAC1") == []

    def test_exactly_at_ratio(self, analyzer, results, result_factory):
        results.extend(result_factory("VAC1", 1000, high=300))
        assert analyzer.detect_marks_anomaly("VAC1") == []

    def test_no_results(self, analyzer, ledger):
        assert analyzer.detect_marks_anomaly("VAC1") == []
        assert ledger.events == []

    def test_custom_thresholds(self, results, store, ledger, result_factory):
        results.extend(result_factory("VAC1", 10, high=2))
        analyzer = FraudAnalyzer(results, store, ledger, anomaly_ratio_threshold=0.1)
        assert analyzer.detect_marks_anomaly("VAC1")[0].suspect_count == 2


class TestAnalyze:
    """Tests for combined analysis, dedup and failures."""

    def test_both_detectors(self, analyzer, results, result_factory):
        results.extend(result_factory("VAC1", 1000, shared=520, high=310))

        alerts = analyzer.analyze("VAC1")

        assert [a.alert_type for a in alerts] == [AlertType.PAPER_LEAK, AlertType.MARKS_ANOMALY]

    def test_rerun_does_not_duplicate(self, analyzer, results, store, ledger, result_factory):
        results.extend(result_factory("VAC1", 1000, shared=520, high=310))

        first = analyzer.analyze("VAC1")
        second = analyzer.analyze("VAC1")

        assert first == second
        assert len(store.find_by_vacancy(FraudAlert, "VAC1")) == 2
        assert len(ledger.events) == 2

    def test_new_finding_after_more_results(self, analyzer, results, store, result_factory):
        results.extend(result_factory("VAC1", 1000, high=310))
        analyzer.analyze("VAC1")

        results.add(ExamResult("LATE1", "VAC1", 99, fingerprint("late")))
        alerts = analyzer.analyze("VAC1")

        assert alerts[0].suspect_count == 311
        assert len(store.find_by_vacancy(FraudAlert, "VAC1")) == 2

    def test_get_fraud_alerts(self, analyzer, results, result_factory):
        assert analyzer.get_fraud_alerts("VAC1") == []
        results.extend(result_factory("VAC1", 1000, shared=520))
        analyzer.analyze("VAC1")
        assert len(analyzer.get_fraud_alerts("VAC1")) == 1

    def test_empty_vacancy_rejected(self, analyzer):
        with pytest.raises(ValidationError):
            analyzer.analyze("")

    def test_ledger_failure_creates_no_alert(self, results, store, result_factory):
        results.extend(result_factory("VAC1", 1000, shared=520))
        ledger = InMemoryLedgerClient(fail_on={EVENT_DETECT_PAPER_LEAK})
        analyzer = FraudAnalyzer(results, store, ledger)

        with pytest.raises(LedgerUnavailable):
            analyzer.detect_paper_leak("VAC1")
        assert store.find_by_vacancy(FraudAlert, "VAC1") == []

        ledger.heal()
        assert len(analyzer.detect_paper_leak("VAC1")) == 1

    def test_store_failure_retry_reuses_ledger_ref(self, flaky_store, ledger, results, result_factory):
        results.extend(result_factory("VAC1", 1000, shared=520))
        analyzer = FraudAnalyzer(results, flaky_store, ledger)

        with pytest.raises(PersistenceError):
            analyzer.detect_paper_leak("VAC1")
        alert = analyzer.detect_paper_leak("VAC1")[0]

        assert len(ledger.events) == 1
        assert alert.ledger_ref == ledger.events[0]["tx_ref"]

    def test_alert_receipt(self, analyzer, results, result_factory, temp_ledger):
        results.extend(result_factory("VAC1", 1000, shared=520))
        analyzer.analyze("VAC1")

        receipts = [r for r in load_receipts(temp_ledger) if r["receipt_type"] == "fraud_alert"]
        assert len(receipts) == 1
        assert receipts[0]["suspect_count"] == 520
