"""
Ledger Clients

The ledger is an append-only proof sink: submit an event, get back an
opaque transaction reference. Submissions that carry a token are
idempotent, so a caller retrying after a failure gets the original
reference instead of a second entry.
"""

import json
import logging
import os
import threading
from typing import Any, Dict, List, Optional, Protocol, Set, Tuple

import portalocker

from .core import LedgerUnavailable, TENANT_ID, fingerprint, now_iso

logger = logging.getLogger(__name__)

LEDGER_RECORD_TYPE = "ledger_event"


class LedgerClient(Protocol):
    def submit(self, event_name: str, *args: Any, token: Optional[str] = None) -> str:
        ...


def _canonical_args(args: Tuple[Any, ...]) -> List[Any]:
    return [a if isinstance(a, (int, float, str, bool)) or a is None else str(a) for a in args]


class ReceiptLedgerClient:
    """
    Production ledger sink backed by an append-only JSONL file.

    Every event becomes one line; the reference is "0x" + SHA256 of the
    canonical line. The file is locked for the token lookup and the append
    so concurrent processes never write the same token twice.
    """

    def __init__(self, path: str, tenant_id: str = TENANT_ID, timeout: float = 10.0):
        self.path = path
        self.tenant_id = tenant_id
        self.timeout = timeout
        self._mutex = threading.Lock()

    def _known_tokens(self, fh) -> Dict[str, str]:
        fh.seek(0)
        tokens = {}
        for line in fh:
            line = line.strip()
            if not line:
                continue
            entry = json.loads(line)
            if entry.get("token"):
                tokens[entry["token"]] = entry["tx_ref"]
        return tokens

    def submit(self, event_name: str, *args: Any, token: Optional[str] = None) -> str:
        try:
            directory = os.path.dirname(os.path.abspath(self.path))
            os.makedirs(directory, exist_ok=True)
            with self._mutex, portalocker.Lock(self.path, mode='a+', timeout=self.timeout) as fh:
                if token:
                    existing = self._known_tokens(fh).get(token)
                    if existing:
                        logger.info("Ledger token %s already recorded: %s", token, existing)
                        return existing

                event = {
                    "record_type": LEDGER_RECORD_TYPE,
                    "tenant_id": self.tenant_id,
                    "event": event_name,
                    "args": _canonical_args(args),
                    "token": token,
                    "ts": now_iso(),
                }
                body = json.dumps(event, sort_keys=True)
                event["tx_ref"] = "0x" + fingerprint(body)

                fh.seek(0, os.SEEK_END)
                fh.write(json.dumps(event, sort_keys=True) + "\n")
                fh.flush()
        except (OSError, ValueError, KeyError, portalocker.LockException) as e:
            raise LedgerUnavailable(
                f"Ledger write failed for {event_name}: {e}",
                {"event": event_name, "token": token}
            ) from e

        logger.info("Ledger event recorded: event=%s, tx_ref=%s", event_name, event["tx_ref"])
        return event["tx_ref"]

    def events(self) -> List[Dict[str, Any]]:
        """All recorded events in append order."""
        entries = []
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                for line in f:
                    line = line.strip()
                    if line:
                        entries.append(json.loads(line))
        except FileNotFoundError:
            pass
        return entries


class InMemoryLedgerClient:
    """
    Deterministic ledger double.

    References are derived from a submission counter, so two clients fed the
    same calls produce the same references. Failures can be injected per
    event name (fail_on) or after a number of successful submissions
    (fail_after).
    """

    def __init__(self, fail_on: Optional[Set[str]] = None, fail_after: Optional[int] = None):
        self.fail_on = set(fail_on or ())
        self.fail_after = fail_after
        self.events: List[Dict[str, Any]] = []
        self.attempts = 0
        self._tokens: Dict[str, str] = {}
        self._mutex = threading.Lock()

    def heal(self) -> None:
        """Stop injecting failures."""
        self.fail_on.clear()
        self.fail_after = None

    def submit(self, event_name: str, *args: Any, token: Optional[str] = None) -> str:
        with self._mutex:
            self.attempts += 1
            if token and token in self._tokens:
                return self._tokens[token]

            if event_name in self.fail_on or (
                self.fail_after is not None and len(self.events) >= self.fail_after
            ):
                raise LedgerUnavailable(f"Injected ledger failure for {event_name}", {"event": event_name})

            seq = len(self.events) + 1
            tx_ref = "0x" + fingerprint(f"{seq}:{event_name}:{json.dumps(_canonical_args(args))}")
            self.events.append({"event": event_name, "args": list(args), "token": token, "tx_ref": tx_ref})
            if token:
                self._tokens[token] = tx_ref
            return tx_ref

    def events_named(self, event_name: str) -> List[Dict[str, Any]]:
        return [e for e in self.events if e["event"] == event_name]
