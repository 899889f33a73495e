"""
Persistence Stores and Exam Result Sources

InMemoryStore keeps records in dicts and restores a snapshot when a
transaction fails. JsonFileStore adds a JSON document on disk, shared
between processes: a transaction locks the document, reloads it and
rewrites it when the outermost transaction commits.
"""

import json
import logging
import os
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Type, TypeVar

import portalocker

from .core import PersistenceError
from .fraud.ingest import ingest_result
from .fraud.models import ExamResult, FraudAlert
from .papers.models import PaperSet

logger = logging.getLogger(__name__)

R = TypeVar("R")

RECORD_KINDS: Dict[str, Type] = {
    "PaperSet": PaperSet,
    "FraudAlert": FraudAlert,
}


def _kind_name(kind: Type) -> str:
    name = kind.__name__
    if name not in RECORD_KINDS:
        raise PersistenceError(f"Unsupported record kind: {name}")
    return name


class InMemoryStore:
    """Dict-backed PersistenceStore with all-or-nothing transactions."""

    def __init__(self):
        self._records: Dict[str, Dict[str, Any]] = {name: {} for name in RECORD_KINDS}
        self._lock = threading.RLock()
        self._depth = 0

    def save(self, record: Any) -> Any:
        name = _kind_name(type(record))
        with self.transaction():
            self._records[name][record.id] = record
        return record

    def find_by_vacancy(self, kind: Type[R], vacancy_id: str) -> List[R]:
        name = _kind_name(kind)
        with self._lock:
            self._refresh()
            return [r for r in self._records[name].values() if r.vacancy_id == vacancy_id]

    def find_by_id(self, kind: Type[R], record_id: str) -> Optional[R]:
        name = _kind_name(kind)
        with self._lock:
            self._refresh()
            return self._records[name].get(record_id)

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Group reads and writes. Nested transactions join the outermost one;
        an exception anywhere restores the state from before the outermost
        transaction began.
        """
        with self._lock:
            outermost = self._depth == 0
            if outermost:
                self._begin()
                snapshot = {name: dict(records) for name, records in self._records.items()}
            self._depth += 1
            try:
                yield
                if outermost:
                    self._commit()
            except BaseException:
                if outermost:
                    self._records = snapshot
                    logger.warning("Store transaction rolled back")
                raise
            finally:
                self._depth -= 1
                if outermost:
                    self._end()

    def _begin(self) -> None:
        pass

    def _commit(self) -> None:
        pass

    def _end(self) -> None:
        pass

    def _refresh(self) -> None:
        pass

    def __len__(self) -> int:
        with self._lock:
            self._refresh()
            return sum(len(records) for records in self._records.values())


class JsonFileStore(InMemoryStore):
    """
    InMemoryStore mirrored to a single JSON document.

    The outermost transaction holds an exclusive lock on "<path>.lock" from
    start to commit or rollback and reloads the document under it, so a
    check-then-write inside one transaction sees every other writer's
    committed records. Reads outside a transaction reload the document; the
    file is replaced atomically, so they see either the old or the new one.
    """

    def __init__(self, path: str, timeout: float = 10.0):
        super().__init__()
        self.path = path
        self.timeout = timeout
        self._file_lock: Optional[portalocker.Lock] = None
        self._load()

    def _load(self) -> None:
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                document = json.load(f)
        except FileNotFoundError:
            document = {}
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Cannot read store {self.path}: {e}", {"path": self.path}) from e

        records: Dict[str, Dict[str, Any]] = {name: {} for name in RECORD_KINDS}
        try:
            for name, kind in RECORD_KINDS.items():
                for data in document.get(name, []):
                    record = kind.from_dict(data)
                    records[name][record.id] = record
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise PersistenceError(
                f"Malformed record in store {self.path}: {e!r}", {"path": self.path}
            ) from e
        self._records = records

    def _refresh(self) -> None:
        if self._depth == 0:
            self._load()

    def _begin(self) -> None:
        try:
            os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
            file_lock = portalocker.Lock(self.path + ".lock", mode='a', timeout=self.timeout)
            file_lock.acquire()
        except (OSError, portalocker.LockException) as e:
            raise PersistenceError(
                f"Cannot lock store {self.path}: {e}", {"path": self.path}, retryable=True
            ) from e
        self._file_lock = file_lock
        try:
            self._load()
        except PersistenceError:
            self._end()
            raise

    def _commit(self) -> None:
        document = {
            name: [r.to_dict() for r in records.values()]
            for name, records in self._records.items()
        }
        tmp_path = self.path + ".tmp"
        try:
            with open(tmp_path, 'w', encoding='utf-8') as f:
                json.dump(document, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise PersistenceError(
                f"Cannot write store {self.path}: {e}", {"path": self.path}, retryable=True
            ) from e

    def _end(self) -> None:
        if self._file_lock is not None:
            self._file_lock.release()
            self._file_lock = None


class InMemoryResultSource:
    """ExamResultSource over a list held in memory."""

    def __init__(self, results: Optional[List[ExamResult]] = None):
        self._results: List[ExamResult] = list(results or [])

    def add(self, *results: ExamResult) -> None:
        self._results.extend(results)

    def extend(self, results: List[ExamResult]) -> None:
        self._results.extend(results)

    def find_by_vacancy(self, vacancy_id: str) -> List[ExamResult]:
        return [r for r in self._results if r.vacancy_id == vacancy_id]

    def __len__(self) -> int:
        return len(self._results)


class JsonResultSource(InMemoryResultSource):
    """
    ExamResultSource loaded from a JSON file holding a list of raw result
    records. Every record must validate.
    """

    def __init__(self, path: str):
        try:
            with open(path, 'r', encoding='utf-8') as f:
                records = json.load(f)
        except (OSError, ValueError) as e:
            raise PersistenceError(f"Cannot read results {path}: {e}", {"path": path}) from e
        super().__init__([ingest_result(record) for record in records])
        self.path = path
