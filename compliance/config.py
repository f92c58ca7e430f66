"""
Ledger configuration.

Defaults suit an in-memory ledger; `LedgerConfig.from_env` reads the
COMPLIANCE_* environment variables for hosted deployments.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Mapping, Optional
import os

BACKEND_TYPES = ("memory", "file")

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off", "")


@dataclass(frozen=True)
class LedgerConfig:
    """Configuration for a ComplianceLedger."""
    backend_type: str = "memory"  # "memory" or "file"
    storage_dir: Optional[str] = None
    gate_reads: bool = False  # require READ on any record identifier to read it
    max_id_attempts: int = 1024  # collision retries before an append aborts

    def __post_init__(self):
        if self.backend_type not in BACKEND_TYPES:
            raise ValueError(
                f"backend_type must be one of {BACKEND_TYPES}, got {self.backend_type!r}"
            )
        if self.backend_type == "file" and not self.storage_dir:
            raise ValueError("file backend requires storage_dir")
        if self.max_id_attempts < 1:
            raise ValueError("max_id_attempts must be >= 1")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'LedgerConfig':
        env = os.environ if environ is None else environ
        return cls(
            backend_type=env.get("COMPLIANCE_BACKEND", "memory").strip().lower(),
            storage_dir=env.get("COMPLIANCE_STORAGE_DIR") or None,
            gate_reads=_parse_bool("COMPLIANCE_GATE_READS", env.get("COMPLIANCE_GATE_READS", "false")),
            max_id_attempts=_parse_int("COMPLIANCE_MAX_ID_ATTEMPTS", env.get("COMPLIANCE_MAX_ID_ATTEMPTS", "1024")),
        )


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e
