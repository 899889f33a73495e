"""
ExamChain - Tamper-Evident Exam Paper Distribution and Fraud Detection

- Paper sets A-E per vacancy, fingerprinted and recorded on a ledger
- Center locking with administrative unlock
- Integrity verification against the persisted paper content
- Leak-cluster and marks-anomaly detection over exam results
"""

__version__ = "1.0.0"
__author__ = "ExamChain Team"
