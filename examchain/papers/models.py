"""
Paper Set Model

A PaperSet is one of five parallel variants (A-E) of an exam. Its lock
state moves only through lock_paper_set and unlock_paper_set; the content
hash never changes after generation.
"""

import uuid
from dataclasses import asdict, dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional

from ..core import ConflictError, ValidationError, now_iso, require


class LockState(str, Enum):
    UNLOCKED = "UNLOCKED"
    LOCKED = "LOCKED"


@dataclass(frozen=True)
class PaperSet:
    """One labelled paper variant for a vacancy."""
    vacancy_id: str
    set_id: str
    content_hash: str
    content: str
    ledger_ref: str
    state: LockState = LockState.UNLOCKED
    center_id: Optional[str] = None
    timestamp: str = ""
    id: str = ""

    @classmethod
    def create(
        cls,
        vacancy_id: str,
        set_id: str,
        content: str,
        content_hash: str,
        ledger_ref: str
    ) -> "PaperSet":
        """New unlocked set with a fresh id and timestamp."""
        return cls(
            vacancy_id=vacancy_id,
            set_id=set_id,
            content_hash=content_hash,
            content=content,
            ledger_ref=ledger_ref,
            timestamp=now_iso(),
            id=uuid.uuid4().hex
        )

    @property
    def locked(self) -> bool:
        return self.state is LockState.LOCKED

    def to_dict(self, include_content: bool = True) -> Dict[str, Any]:
        data = asdict(self)
        data["state"] = self.state.value
        data["locked"] = self.locked
        if not include_content:
            data.pop("content")
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PaperSet":
        return cls(
            vacancy_id=data["vacancy_id"],
            set_id=data["set_id"],
            content_hash=data["content_hash"],
            content=data["content"],
            ledger_ref=data["ledger_ref"],
            state=LockState(data.get("state", LockState.UNLOCKED.value)),
            center_id=data.get("center_id"),
            timestamp=data.get("timestamp", ""),
            id=data["id"]
        )


def lock_paper_set(paper_set: PaperSet, center_id: str) -> PaperSet:
    """
    UNLOCKED -> LOCKED, binding the set to an exam center.

    Raises:
        ValidationError: If center_id is empty
        ConflictError: If the set is already locked
    """
    center_id = require(center_id, "center_id")
    if paper_set.locked:
        raise ConflictError(
            f"Paper set {paper_set.set_id} is already locked",
            {"set_id": paper_set.set_id, "center_id": paper_set.center_id}
        )
    return replace(paper_set, state=LockState.LOCKED, center_id=center_id, timestamp=now_iso())


def unlock_paper_set(paper_set: PaperSet) -> PaperSet:
    """
    Any state -> UNLOCKED. The last center assignment is kept as history.
    """
    return replace(paper_set, state=LockState.UNLOCKED, timestamp=now_iso())


def check_label(set_id: str, labels) -> str:
    """Return set_id if it is one of labels, else raise ValidationError."""
    if set_id not in labels:
        raise ValidationError(f"Unknown paper set label: {set_id}", {"labels": list(labels)})
    return set_id
