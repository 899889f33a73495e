"""
ExamChain Papers Module

Paper-set integrity lifecycle: generate five fingerprinted sets per
vacancy, lock them to an exam center, verify them against their recorded
fingerprint, and unlock them on administrative override.
"""

from .models import PaperSet, LockState, lock_paper_set, unlock_paper_set
from .content import ContentSource, PlaceholderContentSource
from .lifecycle import PaperLifecycleManager, IntegrityReport, IntegrityStatus

__all__ = [
    # models
    'PaperSet', 'LockState', 'lock_paper_set', 'unlock_paper_set',
    # content
    'ContentSource', 'PlaceholderContentSource',
    # lifecycle
    'PaperLifecycleManager', 'IntegrityReport', 'IntegrityStatus'
]
