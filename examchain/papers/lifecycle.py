"""
Paper Set Lifecycle

Generation, locking, integrity verification and administrative unlock of
the five paper sets that belong to a vacancy.

Write policy for generate: all five contents are composed and fingerprinted
first, then each fingerprint is submitted to the ledger with the token
"distributePaper:<vacancy>:<set>", and only then are the five sets saved.
The existence check, the ledger submissions and the saves share one store
transaction, so a second generate for the vacancy always sees the first
batch. A ledger failure leaves nothing persisted and
raises LedgerUnavailable; a storage failure rolls the batch back and raises
PersistenceError. In both cases calling generate again is safe: the ledger
returns the references it already issued for those tokens.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from ..core import (
    EVENT_DISTRIBUTE_PAPER,
    SET_LABELS,
    TENANT_ID,
    ConflictError,
    NotFoundError,
    emit_receipt,
    fingerprint,
    merkle,
    require,
)
from ..interfaces import PersistenceStore
from ..ledger import LedgerClient
from ..locking import VacancyLocks
from .content import ContentSource, PlaceholderContentSource
from .models import PaperSet, check_label, lock_paper_set, unlock_paper_set

logger = logging.getLogger(__name__)


class IntegrityStatus(str, Enum):
    VALID = "VALID"
    TAMPERED = "TAMPERED"
    NOT_FOUND = "NOT_FOUND"


@dataclass(frozen=True)
class IntegrityReport:
    paper_set_id: str
    status: IntegrityStatus
    expected_hash: Optional[str] = None
    actual_hash: Optional[str] = None

    @property
    def valid(self) -> bool:
        return self.status is IntegrityStatus.VALID


def _label_order(paper_set: PaperSet) -> int:
    try:
        return SET_LABELS.index(paper_set.set_id)
    except ValueError:
        return len(SET_LABELS)


class PaperLifecycleManager:
    """Owns the PaperSet state machine for every vacancy."""

    def __init__(
        self,
        store: PersistenceStore,
        ledger: LedgerClient,
        content_source: Optional[ContentSource] = None,
        locks: Optional[VacancyLocks] = None,
        tenant_id: str = TENANT_ID
    ):
        self.store = store
        self.ledger = ledger
        self.content_source = content_source or PlaceholderContentSource()
        self.locks = locks or VacancyLocks()
        self.tenant_id = tenant_id

    def get_sets(self, vacancy_id: str) -> List[PaperSet]:
        """All sets for a vacancy in label order; empty when none exist."""
        vacancy_id = require(vacancy_id, "vacancy_id")
        sets = sorted(self.store.find_by_vacancy(PaperSet, vacancy_id), key=_label_order)
        if not sets:
            logger.warning("No paper sets found for vacancy: %s", vacancy_id)
        return sets

    def get_set(self, vacancy_id: str, set_id: str) -> Optional[PaperSet]:
        """The set with the given label, or None."""
        set_id = check_label(require(set_id, "set_id"), SET_LABELS)
        for paper_set in self.store.find_by_vacancy(PaperSet, require(vacancy_id, "vacancy_id")):
            if paper_set.set_id == set_id:
                return paper_set
        return None

    def generate(self, vacancy_id: str) -> List[PaperSet]:
        """
        Create the five paper sets A-E for a vacancy.

        Args:
            vacancy_id: Exam instance identifier

        Returns:
            The five new sets in label order

        Raises:
            ValidationError: If vacancy_id is empty
            ConflictError: If any set already exists for the vacancy
            LedgerUnavailable: If a ledger submission fails (nothing persisted)
            PersistenceError: If the batch cannot be saved (nothing persisted)
        """
        vacancy_id = require(vacancy_id, "vacancy_id")
        logger.info("Generating paper sets for vacancy: %s", vacancy_id)

        with self.locks.hold(vacancy_id), self.store.transaction():
            existing = self.store.find_by_vacancy(PaperSet, vacancy_id)
            if existing:
                raise ConflictError(
                    f"Paper sets already exist for vacancy {vacancy_id}",
                    {"vacancy_id": vacancy_id, "count": len(existing)}
                )

            drafts = []
            for set_id in SET_LABELS:
                content = self.content_source.compose(vacancy_id, set_id)
                drafts.append((set_id, content, fingerprint(content)))

            refs = []
            for set_id, _, content_hash in drafts:
                refs.append(self.ledger.submit(
                    EVENT_DISTRIBUTE_PAPER, vacancy_id, set_id, content_hash,
                    token=f"{EVENT_DISTRIBUTE_PAPER}:{vacancy_id}:{set_id}"
                ))

            generated = [
                PaperSet.create(vacancy_id, set_id, content, content_hash, ref)
                for (set_id, content, content_hash), ref in zip(drafts, refs)
            ]
            for paper_set in generated:
                self.store.save(paper_set)

        for paper_set in generated:
            logger.info("Paper set %s generated: id=%s, ledger_ref=%s",
                        paper_set.set_id, paper_set.id, paper_set.ledger_ref)

        emit_receipt("paper_batch", {
            "vacancy_id": vacancy_id,
            "set_count": len(generated),
            "sets": [{"set_id": p.set_id, "content_hash": p.content_hash, "ledger_ref": p.ledger_ref}
                     for p in generated],
            "merkle_root": merkle([p.content_hash for p in generated])
        }, self.tenant_id)

        return generated

    def lock(self, vacancy_id: str, center_id: str) -> List[PaperSet]:
        """
        Bind every unlocked set of a vacancy to an exam center.

        Sets that are already locked keep their original center; locking is
        idempotent per set until an explicit unlock.

        Raises:
            ValidationError: If either identifier is empty
            NotFoundError: If the vacancy has no sets
        """
        vacancy_id = require(vacancy_id, "vacancy_id")
        center_id = require(center_id, "center_id")
        logger.info("Locking papers for vacancy: %s, center: %s", vacancy_id, center_id)

        with self.locks.hold(vacancy_id), self.store.transaction():
            paper_sets = self.store.find_by_vacancy(PaperSet, vacancy_id)
            if not paper_sets:
                raise NotFoundError(f"No paper sets found for vacancy: {vacancy_id}", {"vacancy_id": vacancy_id})

            updated = []
            newly_locked = []
            for paper_set in paper_sets:
                if paper_set.locked:
                    logger.warning("Paper set %s is already locked for center %s",
                                   paper_set.set_id, paper_set.center_id)
                    updated.append(paper_set)
                    continue
                locked = lock_paper_set(paper_set, center_id)
                self.store.save(locked)
                updated.append(locked)
                newly_locked.append(locked.set_id)

        if newly_locked:
            emit_receipt("paper_lock", {
                "vacancy_id": vacancy_id,
                "center_id": center_id,
                "set_ids": newly_locked
            }, self.tenant_id)

        return sorted(updated, key=_label_order)

    def unlock(self, vacancy_id: str) -> List[PaperSet]:
        """
        Administrative override: unlock every set of a vacancy.

        Authorization is the caller's responsibility. Center assignments are
        kept as history.
        """
        vacancy_id = require(vacancy_id, "vacancy_id")
        logger.warning("ADMIN ACTION: Unlocking papers for vacancy: %s", vacancy_id)

        with self.locks.hold(vacancy_id), self.store.transaction():
            paper_sets = self.store.find_by_vacancy(PaperSet, vacancy_id)
            unlocked = []
            for paper_set in paper_sets:
                released = unlock_paper_set(paper_set)
                self.store.save(released)
                unlocked.append(released)

        emit_receipt("paper_unlock", {
            "vacancy_id": vacancy_id,
            "set_ids": [p.set_id for p in unlocked]
        }, self.tenant_id)

        return sorted(unlocked, key=_label_order)

    def check_integrity(self, paper_set_id: str) -> IntegrityReport:
        """
        Re-hash the persisted content of a set and compare it with the
        fingerprint recorded at generation.
        """
        paper_set_id = require(paper_set_id, "paper_set_id")
        paper_set = self.store.find_by_id(PaperSet, paper_set_id)
        if paper_set is None:
            logger.warning("Paper set not found for verification: %s", paper_set_id)
            return IntegrityReport(paper_set_id, IntegrityStatus.NOT_FOUND)

        actual = fingerprint(paper_set.content)
        if actual == paper_set.content_hash:
            logger.info("Paper integrity verified: %s VALID", paper_set_id)
            status = IntegrityStatus.VALID
        else:
            logger.error("Paper integrity verification FAILED for %s: tampering detected", paper_set_id)
            status = IntegrityStatus.TAMPERED
            emit_receipt("paper_tamper", {
                "paper_set_id": paper_set_id,
                "vacancy_id": paper_set.vacancy_id,
                "set_id": paper_set.set_id,
                "expected": paper_set.content_hash,
                "actual": actual
            }, self.tenant_id)

        return IntegrityReport(paper_set_id, status, paper_set.content_hash, actual)

    def verify(self, paper_set_id: str) -> bool:
        """True only for an existing, untampered set."""
        return self.check_integrity(paper_set_id).valid

    def count(self, vacancy_id: str) -> int:
        return len(self.store.find_by_vacancy(PaperSet, require(vacancy_id, "vacancy_id")))

    def all_locked(self, vacancy_id: str) -> bool:
        """True iff the vacancy has sets and every one is locked."""
        paper_sets = self.store.find_by_vacancy(PaperSet, require(vacancy_id, "vacancy_id"))
        return bool(paper_sets) and all(p.locked for p in paper_sets)
