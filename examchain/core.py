"""
ExamChain Core Module

Foundation module providing:
- fingerprint: SHA256 content fingerprint (fixed-width lowercase hex)
- dual_hash: SHA256:BLAKE3 dual hashing for receipt payloads
- emit_receipt: Receipt creation with timestamps and hashes
- merkle: Merkle root computation
- ExamChainError and its typed subclasses
- Constants and configuration
"""

import hashlib
import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

import blake3
import portalocker

logger = logging.getLogger(__name__)

# === TENANT CONFIGURATION ===
TENANT_ID = "examchain"

# === PAPER SETS ===
SET_LABELS = ("A", "B", "C", "D", "E")
QUESTIONS_PER_PAPER = 100
PAPER_DURATION_HOURS = 3
FINGERPRINT_HEX_LEN = 64

# === FRAUD THRESHOLDS ===
LEAK_THRESHOLD = 500                 # identical answer patterns = leak cluster
ANOMALY_MARK_THRESHOLD = 90          # marks strictly above this count as high
ANOMALY_RATIO_THRESHOLD = 0.30       # high scorers strictly above this = anomaly

# === LEDGER EVENTS ===
EVENT_DISTRIBUTE_PAPER = "distributePaper"
EVENT_DETECT_PAPER_LEAK = "detectPaperLeak"
EVENT_DETECT_MARKS_ANOMALY = "detectMarksAnomaly"

# Receipts ledger path
RECEIPTS_LEDGER_PATH = os.environ.get(
    "EXAMCHAIN_RECEIPTS_PATH",
    os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "receipts.jsonl")
)

# Receipt schema for autodocumentation
RECEIPT_SCHEMA = {
    "base_fields": ["receipt_type", "ts", "tenant_id", "payload_hash"],
    "hash_format": "sha256:blake3",
    "tenant_id": TENANT_ID
}


class ExamChainError(Exception):
    """
    Base class for every failure raised by ExamChain.

    Callers react on the subclass (retry vs. abort vs. display), never on
    the message text.
    """

    retryable = False

    def __init__(self, message: str, context: Optional[Dict] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)


class ValidationError(ExamChainError):
    """A required identifier or field is missing, empty or malformed."""


class ConflictError(ExamChainError):
    """The requested state change collides with existing state."""


class NotFoundError(ExamChainError):
    """No record exists for the given identifier."""


class LedgerUnavailable(ExamChainError):
    """The ledger collaborator could not record an event. Safe to retry."""

    retryable = True


class PersistenceError(ExamChainError):
    """The storage collaborator failed to read or write."""

    def __init__(self, message: str, context: Optional[Dict] = None, retryable: bool = False):
        super().__init__(message, context)
        self.retryable = retryable


def now_iso() -> str:
    """Current UTC time as ISO-8601."""
    return datetime.now(timezone.utc).isoformat()


def require(value: Optional[str], name: str) -> str:
    """
    Return value stripped, or raise ValidationError when absent or blank.
    """
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} is required", {"field": name})
    return str(value).strip()


def fingerprint(data: Union[bytes, str]) -> str:
    """
    Compute the SHA256 fingerprint of content.

    Args:
        data: Input data as bytes or string (strings are UTF-8 encoded)

    Returns:
        64 lowercase hex characters

    Pure function - no side effects.
    """
    if isinstance(data, str):
        data = data.encode('utf-8')
    return hashlib.sha256(data).hexdigest()


def dual_hash(data: Union[bytes, str]) -> str:
    """
    Compute dual hash in SHA256:BLAKE3 format.

    Args:
        data: Input data as bytes or string

    Returns:
        Hash string in format "sha256_hex:blake3_hex"
    """
    if isinstance(data, str):
        data = data.encode('utf-8')

    sha256_hash = hashlib.sha256(data).hexdigest()
    blake3_hash = blake3.blake3(data).hexdigest()

    return f"{sha256_hash}:{blake3_hash}"


def emit_receipt(receipt_type: str, data: Dict[str, Any], tenant_id: str = TENANT_ID) -> Dict[str, Any]:
    """
    Create a receipt with timestamp, tenant_id, and payload hash.

    Args:
        receipt_type: Type of receipt (e.g., "paper_generate")
        data: Payload data to include in receipt
        tenant_id: Tenant identifier (default: "examchain")

    Returns:
        Complete receipt dict with ts, tenant_id, and payload_hash
    """
    ts = now_iso()

    payload_json = json.dumps(data, sort_keys=True, default=str)
    payload_hash = dual_hash(payload_json)

    receipt = {
        "receipt_type": receipt_type,
        "ts": ts,
        "tenant_id": tenant_id,
        **data,
        "payload_hash": payload_hash
    }

    append_to_ledger(receipt)

    return receipt


def append_to_ledger(receipt: Dict[str, Any], ledger_path: Optional[str] = None) -> None:
    """
    Append a receipt to the receipts.jsonl ledger.

    Args:
        receipt: Receipt dict to append
        ledger_path: Path to ledger file (default: RECEIPTS_LEDGER_PATH)
    """
    path = ledger_path or RECEIPTS_LEDGER_PATH
    line = json.dumps(receipt, sort_keys=True, default=str) + '\n'
    try:
        with portalocker.Lock(path, mode='a', timeout=10) as f:
            f.write(line)
            f.flush()
    except (OSError, portalocker.LockException) as e:
        # Best effort: the audited operation has already committed
        logger.error("Receipt %s not written to %s: %s", receipt.get("receipt_type"), path, e)


def load_receipts(ledger_path: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Load all receipts from the ledger.

    Args:
        ledger_path: Path to ledger file (default: RECEIPTS_LEDGER_PATH)

    Returns:
        List of receipt dicts
    """
    path = ledger_path or RECEIPTS_LEDGER_PATH
    receipts = []

    try:
        with open(path, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if line:
                    receipts.append(json.loads(line))
    except FileNotFoundError:
        pass

    return receipts


def merkle(items: List[Union[str, bytes, Dict]]) -> str:
    """
    Compute Merkle root using dual_hash.

    Args:
        items: List of items to hash (strings, bytes, or dicts)

    Returns:
        Merkle root as dual hash string
    """
    if not items:
        return dual_hash("")

    hashes = []
    for item in items:
        if isinstance(item, dict):
            item = json.dumps(item, sort_keys=True, default=str)
        if isinstance(item, str):
            item = item.encode('utf-8')
        hashes.append(dual_hash(item))

    while len(hashes) > 1:
        if len(hashes) % 2 == 1:
            # Odd count: duplicate last hash
            hashes.append(hashes[-1])

        new_level = []
        for i in range(0, len(hashes), 2):
            new_level.append(dual_hash(hashes[i] + hashes[i + 1]))
        hashes = new_level

    return hashes[0]


def validate_receipt(receipt: Dict[str, Any], tenant_id: str = TENANT_ID) -> tuple:
    """
    Validate a receipt has required fields and valid structure.

    Args:
        receipt: Receipt dict to validate
        tenant_id: Expected tenant

    Returns:
        Tuple of (is_valid: bool, reason: str)
    """
    for field in RECEIPT_SCHEMA["base_fields"]:
        if field not in receipt:
            return False, f"Missing required field: {field}"

    if receipt["tenant_id"] != tenant_id:
        return False, f"Invalid tenant_id: {receipt['tenant_id']}"

    payload_hash = receipt.get("payload_hash", "")
    if ":" not in payload_hash:
        return False, f"Invalid hash format: {payload_hash}"

    parts = payload_hash.split(":")
    if len(parts) != 2 or len(parts[0]) != 64 or len(parts[1]) != 64:
        return False, f"Invalid hash lengths in: {payload_hash}"

    return True, "valid"
