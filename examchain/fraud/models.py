"""
Fraud Models

ExamResult is read-only input owned by the results pipeline. FraudAlert is
an immutable finding; it is appended once and never changed.
"""

import uuid
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Tuple

from ..core import now_iso


class AlertType(str, Enum):
    PAPER_LEAK = "PAPER_LEAK"
    MARKS_ANOMALY = "MARKS_ANOMALY"
    OMR_TAMPER = "OMR_TAMPER"


@dataclass(frozen=True)
class ExamResult:
    candidate_id: str
    vacancy_id: str
    marks: float
    answer_pattern_hash: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class FraudAlert:
    """A persisted fraud finding with its ledger proof."""
    vacancy_id: str
    alert_type: AlertType
    suspect_count: int
    pattern_hash: str
    evidence_hash: str
    ledger_ref: str
    timestamp: str = ""
    id: str = ""

    @classmethod
    def create(
        cls,
        vacancy_id: str,
        alert_type: AlertType,
        suspect_count: int,
        pattern_hash: str,
        evidence_hash: str,
        ledger_ref: str
    ) -> "FraudAlert":
        return cls(
            vacancy_id=vacancy_id,
            alert_type=alert_type,
            suspect_count=suspect_count,
            pattern_hash=pattern_hash,
            evidence_hash=evidence_hash,
            ledger_ref=ledger_ref,
            timestamp=now_iso(),
            id=uuid.uuid4().hex
        )

    @property
    def dedup_key(self) -> Tuple[str, AlertType, str]:
        return (self.vacancy_id, self.alert_type, self.pattern_hash)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["alert_type"] = self.alert_type.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FraudAlert":
        return cls(
            vacancy_id=data["vacancy_id"],
            alert_type=AlertType(data["alert_type"]),
            suspect_count=int(data["suspect_count"]),
            pattern_hash=data["pattern_hash"],
            evidence_hash=data["evidence_hash"],
            ledger_ref=data["ledger_ref"],
            timestamp=data.get("timestamp", ""),
            id=data["id"]
        )
