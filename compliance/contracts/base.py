"""
Base Contracts and Shared Types

These are the foundational types used across all layers.
All types here are IMMUTABLE and represent pure data.

BOUNDARY ENFORCEMENT:
=====================
- This module is READ-ONLY from all layers
- Layers may import types but MUST NOT modify this module
- All types are frozen dataclasses for immutability guarantee
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Tuple
from enum import Enum, auto
import hashlib


IDENTIFIER_WIDTH = 32

# Caller identities are opaque account strings supplied by the host.
Account = str


# =============================================================================
# ERROR STATES (Explicit, never silent)
# =============================================================================

class ErrorCode(Enum):
    """
    Explicit error codes for deterministic error handling.
    No silent fallbacks - every error state is enumerated.
    """
    # Access control errors
    UNAUTHORIZED_ACCOUNT = auto()

    # Record store errors
    COMPUTATION_EXHAUSTED = auto()
    STORAGE_WRITE_FAILED = auto()
    STRUCTURAL_INCONSISTENCY = auto()


@dataclass(frozen=True)
class Error:
    """
    Immutable error representation with full context.
    Errors are data - they can be stored, logged and queried.
    """
    code: ErrorCode
    message: str
    timestamp: datetime
    context: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def context_value(self, key: str) -> Optional[str]:
        for k, v in self.context:
            if k == key:
                return v
        return None


class ComplianceError(Exception):
    """
    Base exception for every failed ledger operation.

    Carries the typed Error so callers can inspect code and context.
    A raised ComplianceError always means the operation had no effect.
    """

    code: ErrorCode = ErrorCode.STRUCTURAL_INCONSISTENCY

    def __init__(self, message: str, context: Tuple[Tuple[str, str], ...] = ()):
        super().__init__(message)
        self.error = Error(
            code=self.code,
            message=message,
            timestamp=datetime.now(timezone.utc),
            context=tuple(context)
        )


class UnauthorizedAccount(ComplianceError):
    """Caller lacks the capability required for the operation."""
    code = ErrorCode.UNAUTHORIZED_ACCOUNT


class ComputationExhausted(ComplianceError):
    """Operation exceeded its computation bound and was aborted."""
    code = ErrorCode.COMPUTATION_EXHAUSTED


class StorageWriteError(ComplianceError):
    """Backend refused or failed an append."""
    code = ErrorCode.STORAGE_WRITE_FAILED


class IntegrityError(ComplianceError):
    """Persisted state does not match its derived identifiers or links."""
    code = ErrorCode.STRUCTURAL_INCONSISTENCY


# =============================================================================
# IDENTITY TYPES (Immutable, fixed width)
# =============================================================================

@dataclass(frozen=True, order=True)
class Identifier:
    """
    Immutable fixed-width (32 byte) opaque identifier.

    Used for record ids, entity/resource/organization ids, status codes
    and role tokens. The all-zero value is the "none" sentinel.
    """
    value: bytes

    def __post_init__(self):
        if not isinstance(self.value, bytes):
            raise ValueError("Identifier value must be bytes")
        if len(self.value) != IDENTIFIER_WIDTH:
            raise ValueError(
                f"Identifier must be {IDENTIFIER_WIDTH} bytes, got {len(self.value)}"
            )

    @staticmethod
    def from_text(text: str) -> Identifier:
        """UTF-8 encode and right-pad with zero bytes."""
        raw = text.encode('utf-8')
        if len(raw) > IDENTIFIER_WIDTH:
            raise ValueError(
                f"Text identifier exceeds {IDENTIFIER_WIDTH} bytes: {text!r}"
            )
        return Identifier(value=raw.ljust(IDENTIFIER_WIDTH, b'\x00'))

    @staticmethod
    def from_hex(hex_string: str) -> Identifier:
        if hex_string.startswith('0x'):
            hex_string = hex_string[2:]
        return Identifier(value=bytes.fromhex(hex_string))

    @staticmethod
    def generate(seed: str) -> Identifier:
        """Generate deterministic identifier from seed."""
        return Identifier(value=hashlib.sha256(seed.encode('utf-8')).digest())

    @property
    def is_none(self) -> bool:
        return self.value == NONE_BYTES

    def hex(self) -> str:
        return '0x' + self.value.hex()

    def __str__(self) -> str:
        return self.hex()


NONE_BYTES = bytes(IDENTIFIER_WIDTH)
NONE_ID = Identifier(value=NONE_BYTES)


# =============================================================================
# TEMPORAL TYPES (Immutable, explicit semantics)
# =============================================================================

@dataclass(frozen=True)
class Timestamp:
    """
    Immutable timestamp with explicit semantics.
    All timestamps are UTC, never local time.
    """
    value: datetime

    def __post_init__(self):
        # Ensure UTC timezone
        if self.value.tzinfo is None:
            object.__setattr__(self, 'value', self.value.replace(tzinfo=timezone.utc))

    @staticmethod
    def now() -> Timestamp:
        return Timestamp(value=datetime.now(timezone.utc))

    @staticmethod
    def epoch() -> Timestamp:
        return Timestamp(value=datetime.fromtimestamp(0, tz=timezone.utc))

    @staticmethod
    def from_iso(iso_string: str) -> Timestamp:
        dt = datetime.fromisoformat(iso_string.replace('Z', '+00:00'))
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return Timestamp(value=dt)

    def to_iso(self) -> str:
        return self.value.isoformat()

    def seconds(self) -> int:
        """Whole seconds since the epoch."""
        return int(self.value.timestamp())


@dataclass(frozen=True)
class TimeRange:
    """Immutable time range for queries."""
    start: Timestamp
    end: Timestamp

    def __post_init__(self):
        if self.start.value > self.end.value:
            raise ValueError("TimeRange start must be before or equal to end")

    def contains(self, timestamp: Timestamp) -> bool:
        return self.start.value <= timestamp.value <= self.end.value
