"""
Shared contracts for all layers: identifiers, records, roles, audit entries.
"""

from .base import (
    Account, Error, ErrorCode, ComplianceError, UnauthorizedAccount,
    ComputationExhausted, StorageWriteError, IntegrityError,
    Identifier, NONE_ID, Timestamp, TimeRange
)
from .records import Record, KeyIndexEntry, StorageWriteResult
from .roles import (
    RoleVariant, RoleAccess, RoleSet, DEFAULT_ADMIN_ROLE, CREATE_ROLE,
    derive_role_token
)
from .events import AuditEventType, AuditLogEntry, MetricPoint

__all__ = [
    'Account',
    'Error',
    'ErrorCode',
    'ComplianceError',
    'UnauthorizedAccount',
    'ComputationExhausted',
    'StorageWriteError',
    'IntegrityError',
    'Identifier',
    'NONE_ID',
    'Timestamp',
    'TimeRange',
    'Record',
    'KeyIndexEntry',
    'StorageWriteResult',
    'RoleVariant',
    'RoleAccess',
    'RoleSet',
    'DEFAULT_ADMIN_ROLE',
    'CREATE_ROLE',
    'derive_role_token',
    'AuditEventType',
    'AuditLogEntry',
    'MetricPoint',
]
