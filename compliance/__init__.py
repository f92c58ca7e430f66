"""
Generic Compliance Ledger

An append-only record store organised as per-key backward linked lists,
gated by granular role-based access control.

LAYER STRUCTURE:
================

1. CONTRACTS (contracts/)
   - Immutable shared types: Identifier, Record, RoleSet, Error, audit entries
   - MUST NOT: Hold state or behaviour beyond derivation helpers

2. RECORD STORE (store/)
   - Responsibility: Append-only records, per-key head index, id derivation
   - Outputs: Record ids, Record lookups, chain verification
   - MUST NOT: Authorize callers, mutate or delete stored records

3. ACCESS CONTROL (access/)
   - Responsibility: READ/WRITE/ADMIN tokens per entity/resource/organization
   - Outputs: Authorization decisions, UnauthorizedAccount errors
   - MUST NOT: Touch the record store

4. OBSERVABILITY (observability/)
   - Responsibility: Append-only audit log and metrics
   - MUST NOT: Modify system behaviour

5. LEDGER (ledger.py)
   - Owns one instance of every layer; authorizes, then appends

CONSTRAINTS ENFORCED:
=====================
- Immutability-first: records are frozen and never removed
- All-or-nothing: a failed operation changes nothing
- Deterministic: same appends and clock ticks produce the same ids
- Explicit errors: authorization failures name the missing capability
"""

from .config import LedgerConfig
from .clock import LogicalClock, ClockExhausted
from .contracts import (
    Identifier, NONE_ID, Timestamp, Record, KeyIndexEntry,
    RoleVariant, RoleAccess, RoleSet, DEFAULT_ADMIN_ROLE, CREATE_ROLE,
    ComplianceError, UnauthorizedAccount, ComputationExhausted,
    StorageWriteError, IntegrityError, ErrorCode
)
from .ledger import ComplianceLedger

__all__ = [
    'ComplianceLedger',
    'LedgerConfig',
    'LogicalClock',
    'ClockExhausted',
    'Identifier',
    'NONE_ID',
    'Timestamp',
    'Record',
    'KeyIndexEntry',
    'RoleVariant',
    'RoleAccess',
    'RoleSet',
    'DEFAULT_ADMIN_ROLE',
    'CREATE_ROLE',
    'ComplianceError',
    'UnauthorizedAccount',
    'ComputationExhausted',
    'StorageWriteError',
    'IntegrityError',
    'ErrorCode',
]
