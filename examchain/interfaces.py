"""
Collaborator interfaces used by the paper lifecycle and fraud analyzer.
"""

from typing import Any, ContextManager, List, Optional, Protocol, Type, TypeVar

R = TypeVar("R")


class PersistenceStore(Protocol):
    """
    Keyed storage for PaperSet and FraudAlert records.

    find_by_vacancy returns records in insertion order and an empty list for
    an unknown vacancy. Writes made inside transaction() commit together or
    not at all, and no other writer commits between a read made inside the
    transaction and its commit.
    """

    def save(self, record: Any) -> Any:
        ...

    def find_by_vacancy(self, kind: Type[R], vacancy_id: str) -> List[R]:
        ...

    def find_by_id(self, kind: Type[R], record_id: str) -> Optional[R]:
        ...

    def transaction(self) -> ContextManager[None]:
        ...


class ExamResultSource(Protocol):
    """Read-only access to exam results."""

    def find_by_vacancy(self, vacancy_id: str) -> List[Any]:
        ...
