"""
Exam Result Ingestion Module

Validates raw exam-result records and turns them into ExamResult values.
A candidate's answer vector is reduced to its fingerprint here; the
analyzer only ever sees the fingerprint.
"""

import json
import re
from typing import Any, Dict, List, Tuple

from ..core import FINGERPRINT_HEX_LEN, TENANT_ID, ValidationError, emit_receipt, fingerprint, merkle
from .models import ExamResult


# Required fields for a valid result
REQUIRED_RESULT_FIELDS = [
    "candidate_id",
    "vacancy_id",
    "marks"
]

PATTERN_HASH_RE = re.compile(r"[0-9a-f]{%d}" % FINGERPRINT_HEX_LEN)


def answer_pattern_hash(answers: List[Any]) -> str:
    """
    Fingerprint a candidate's full answer vector.

    Unanswered questions should be passed as None so positions line up.
    """
    canonical = json.dumps([None if a is None else str(a).strip().upper() for a in answers])
    return fingerprint(canonical)


def validate_result(record: Dict[str, Any]) -> Tuple[bool, str]:
    """
    Check required fields and format of an exam result.

    Args:
        record: Result dictionary to validate

    Returns:
        Tuple of (valid: bool, reason: str)
    """
    for field in REQUIRED_RESULT_FIELDS:
        if field not in record:
            return False, f"Missing required field: {field}"

    if not str(record.get("candidate_id") or "").strip():
        return False, "candidate_id cannot be empty"

    if not str(record.get("vacancy_id") or "").strip():
        return False, "vacancy_id cannot be empty"

    marks = record.get("marks")
    if isinstance(marks, bool) or not isinstance(marks, (int, float)):
        return False, "marks must be numeric"
    if marks < 0:
        return False, "marks cannot be negative"

    pattern = record.get("answer_pattern_hash")
    has_answers = isinstance(record.get("answers"), list)
    if not pattern and not has_answers:
        return False, "Missing answer_pattern_hash or answers"
    if pattern and not PATTERN_HASH_RE.fullmatch(str(pattern)):
        return False, f"answer_pattern_hash must be {FINGERPRINT_HEX_LEN} lowercase hex characters"

    return True, "valid"


def ingest_result(record: Dict[str, Any]) -> ExamResult:
    """
    Validate a raw record and build an ExamResult.

    Raises:
        ValidationError: If the record is invalid
    """
    valid, reason = validate_result(record)
    if not valid:
        raise ValidationError(f"Invalid exam result: {reason}", {"candidate_id": record.get("candidate_id")})

    pattern = record.get("answer_pattern_hash") or answer_pattern_hash(record["answers"])

    return ExamResult(
        candidate_id=str(record["candidate_id"]).strip(),
        vacancy_id=str(record["vacancy_id"]).strip(),
        marks=record["marks"],
        answer_pattern_hash=pattern
    )


def batch_ingest(
    records: List[Dict[str, Any]],
    tenant_id: str = TENANT_ID
) -> Tuple[List[ExamResult], Dict[str, Any]]:
    """
    Batch ingest results with merkle anchor.

    Invalid records are skipped and reported in the receipt.

    Args:
        records: Raw result dictionaries
        tenant_id: Tenant identifier

    Returns:
        Tuple of (results, batch receipt)
    """
    results = []
    errors = []

    for i, record in enumerate(records):
        try:
            results.append(ingest_result(record))
        except ValidationError as e:
            errors.append({"index": i, "error": e.message})

    patterns = [r.answer_pattern_hash for r in results]

    receipt = emit_receipt("result_batch_ingest", {
        "result_count": len(results),
        "error_count": len(errors),
        "merkle_root": merkle(patterns),
        "errors": errors if errors else None
    }, tenant_id)

    return results, receipt
