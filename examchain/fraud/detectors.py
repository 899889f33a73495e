"""
Fraud Detection Statistics

Pure functions over exam results. No receipts, no ledger, no storage.
"""

from collections import defaultdict
from typing import Dict, List, Tuple

from ..core import ANOMALY_MARK_THRESHOLD, LEAK_THRESHOLD, fingerprint
from .models import ExamResult


def group_by_pattern(results: List[ExamResult]) -> Dict[str, List[ExamResult]]:
    """
    Group results by answer pattern fingerprint.

    Args:
        results: Exam results

    Returns:
        Dict of pattern hash -> results, in first-seen order
    """
    groups: Dict[str, List[ExamResult]] = defaultdict(list)
    for result in results:
        groups[result.answer_pattern_hash].append(result)
    return dict(groups)


def leak_clusters(
    results: List[ExamResult],
    threshold: int = LEAK_THRESHOLD
) -> List[Tuple[str, List[ExamResult]]]:
    """
    Groups of identical answer patterns at or above threshold.

    Args:
        results: Exam results
        threshold: Minimum group size

    Returns:
        List of (pattern_hash, members), largest group first
    """
    clusters = [
        (pattern, members)
        for pattern, members in group_by_pattern(results).items()
        if len(members) >= threshold
    ]
    clusters.sort(key=lambda c: len(c[1]), reverse=True)
    return clusters


def high_scorer_ratio(
    results: List[ExamResult],
    mark_threshold: float = ANOMALY_MARK_THRESHOLD
) -> Tuple[int, int, float]:
    """
    Share of candidates scoring strictly above mark_threshold.

    Returns:
        Tuple of (high_count, total, ratio); ratio is 0.0 when total is 0
    """
    total = len(results)
    if total == 0:
        return 0, 0, 0.0

    high = sum(1 for r in results if r.marks > mark_threshold)
    return high, total, high / total


def evidence_hash(results: List[ExamResult]) -> str:
    """Fingerprint of the sorted candidate ids behind a finding."""
    return fingerprint("\n".join(sorted(r.candidate_id for r in results)))
