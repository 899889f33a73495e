"""
ExamChain Fraud Module

Detects exam fraud from published results.

Patterns:
- Paper Leak: 500+ candidates submit an identical answer vector
- Marks Anomaly: more than 30% of candidates score above 90
"""

from .models import AlertType, ExamResult, FraudAlert
from .ingest import answer_pattern_hash, validate_result, ingest_result, batch_ingest
from .detectors import group_by_pattern, leak_clusters, high_scorer_ratio, evidence_hash
from .analyzer import FraudAnalyzer

__all__ = [
    # models
    'AlertType', 'ExamResult', 'FraudAlert',
    # ingest
    'answer_pattern_hash', 'validate_result', 'ingest_result', 'batch_ingest',
    # detectors
    'group_by_pattern', 'leak_clusters', 'high_scorer_ratio', 'evidence_hash',
    # analyzer
    'FraudAnalyzer'
]
