"""
Configuration for ExamChain.

Defaults come from the constants in core; every field can be overridden
through an EXAMCHAIN_* environment variable.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from . import core
from .core import (
    ANOMALY_MARK_THRESHOLD,
    ANOMALY_RATIO_THRESHOLD,
    LEAK_THRESHOLD,
    TENANT_ID,
    ValidationError,
)

ENV_PREFIX = "EXAMCHAIN_"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _default_store_path() -> str:
    return os.path.join(os.path.dirname(core.RECEIPTS_LEDGER_PATH), "examchain_store.json")


def _default_ledger_path() -> str:
    return os.path.join(os.path.dirname(core.RECEIPTS_LEDGER_PATH), "ledger.jsonl")


@dataclass
class Settings:
    """Runtime settings."""
    tenant_id: str = TENANT_ID
    receipts_path: str = field(default_factory=lambda: core.RECEIPTS_LEDGER_PATH)
    store_path: str = field(default_factory=_default_store_path)
    ledger_path: str = field(default_factory=_default_ledger_path)
    leak_threshold: int = LEAK_THRESHOLD
    anomaly_mark_threshold: float = ANOMALY_MARK_THRESHOLD
    anomaly_ratio_threshold: float = ANOMALY_RATIO_THRESHOLD
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from (default: os.environ)

        Returns:
            Settings instance

        Raises:
            ValidationError: If a numeric variable cannot be parsed
        """
        env = os.environ if environ is None else environ
        settings = cls()

        casts: Dict[str, Callable] = {
            "tenant_id": str,
            "receipts_path": str,
            "store_path": str,
            "ledger_path": str,
            "leak_threshold": int,
            "anomaly_mark_threshold": float,
            "anomaly_ratio_threshold": float,
            "log_level": str,
        }
        for name, cast in casts.items():
            key = ENV_PREFIX + name.upper()
            raw = env.get(key)
            if raw is None or raw == "":
                continue
            try:
                setattr(settings, name, cast(raw))
            except ValueError:
                raise ValidationError(f"Invalid value for {key}: {raw!r}", {"variable": key})

        # Store and ledger files sit next to the receipts unless set explicitly
        base = os.path.dirname(os.path.abspath(settings.receipts_path))
        if not env.get(ENV_PREFIX + "STORE_PATH"):
            settings.store_path = os.path.join(base, "examchain_store.json")
        if not env.get(ENV_PREFIX + "LEDGER_PATH"):
            settings.ledger_path = os.path.join(base, "ledger.jsonl")

        if settings.leak_threshold < 1:
            raise ValidationError("leak_threshold must be at least 1", {"value": settings.leak_threshold})
        if not 0.0 <= settings.anomaly_ratio_threshold < 1.0:
            raise ValidationError(
                "anomaly_ratio_threshold must be in [0, 1)",
                {"value": settings.anomaly_ratio_threshold}
            )

        return settings

    def apply(self) -> None:
        """Point the receipts ledger at this configuration's path."""
        core.RECEIPTS_LEDGER_PATH = self.receipts_path


def configure_logging(level: str = "INFO") -> None:
    """Set up root logging for command-line use."""
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
