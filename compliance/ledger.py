"""
Ledger Orchestration Module

The single owning context for record and role state. Every operation
names its caller explicitly; the ledger authorizes through the access
layer and only then touches the record store.

DESIGN PRINCIPLES:
==================
1. Authorization happens before any store mutation
2. A failed operation leaves all state untouched
3. Every operation is traceable through the audit collectors
4. No module-level state: independent ledgers never share anything
"""

from __future__ import annotations
from typing import Iterator, List, Optional

from .access import AccessControl
from .clock import LogicalClock
from .config import LedgerConfig
from .contracts.base import Account, Identifier, Timestamp
from .contracts.events import AuditLogEntry
from .contracts.records import KeyIndexEntry, Record
from .contracts.roles import RoleAccess, RoleSet, RoleVariant
from .observability import LogCollector, MetricsCollector
from .store import FileRecordBackend, InMemoryRecordBackend, RecordBackend, RecordStore
from .store.identifiers import Digest, sha256_digest


class ComplianceLedger:
    """
    Append-only compliance record ledger with granular RBAC.

    FLOW:
    =====
    add_entry: caller -> has_any_role_for(WRITE) -> RecordStore.append
    reads:     optional READ check (LedgerConfig.gate_reads) -> RecordStore
    roles:     AccessControl (CREATE / ADMIN delegation)
    """

    def __init__(
        self,
        admin: Account,
        config: Optional[LedgerConfig] = None,
        clock: Optional[LogicalClock] = None,
        digest: Digest = sha256_digest
    ):
        self._config = config or LedgerConfig()
        self._metrics = MetricsCollector()
        self._store_audit = LogCollector("store")
        self._access_audit = LogCollector("access")

        self._access = AccessControl(
            admin,
            audit=self._access_audit,
            metrics=self._metrics
        )
        self._store = RecordStore(
            backend=self._create_backend(digest),
            clock=clock or LogicalClock.live(),
            digest=digest,
            max_id_attempts=self._config.max_id_attempts,
            audit=self._store_audit,
            metrics=self._metrics
        )

    @classmethod
    def from_env(cls, admin: Account, **kwargs) -> 'ComplianceLedger':
        return cls(admin, config=LedgerConfig.from_env(), **kwargs)

    def _create_backend(self, digest: Digest) -> RecordBackend:
        if self._config.backend_type == "file":
            return FileRecordBackend(self._config.storage_dir, digest=digest)
        return InMemoryRecordBackend()

    # =========================================================================
    # RECORD INTERFACE
    # =========================================================================

    def add_entry(
        self,
        caller: Account,
        key: str,
        receiving_entity_id: Identifier,
        resource_id: Identifier,
        organization_id: Identifier,
        ref: str,
        status: Identifier,
        status_issue_date: Timestamp,
        owner: Account
    ) -> Identifier:
        """
        Append a record under `key` on behalf of `caller`.

        The caller needs WRITE on at least one of the three identifiers.
        Returns the new record id.
        """
        self._access.require_any_role_for(
            caller, receiving_entity_id, resource_id, organization_id,
            RoleAccess.WRITE, "add_entry"
        )
        return self._store.append(
            key=key,
            receiving_entity_id=receiving_entity_id,
            resource_id=resource_id,
            organization_id=organization_id,
            ref=ref,
            status=status,
            status_issue_date=status_issue_date,
            owner=owner
        )

    def get_entry(self, record_id: Identifier, caller: Optional[Account] = None) -> Record:
        return self._authorize_read(self._store.get_entry(record_id), caller, "get_entry")

    def get_latest(self, key: str, caller: Optional[Account] = None) -> Record:
        return self._authorize_read(self._store.get_latest(key), caller, "get_latest")

    def history(self, key: str, caller: Optional[Account] = None) -> Iterator[Record]:
        """Newest to oldest. With gated reads every yielded record is checked."""
        for record in self._store.history(key):
            yield self._authorize_read(record, caller, "history")

    def get_index(self, key: str) -> KeyIndexEntry:
        return self._store.get_index(key)

    @property
    def record_count(self) -> int:
        return self._store.record_count

    def _authorize_read(self, record: Record, caller: Optional[Account], operation: str) -> Record:
        # Misses carry no identifiers to check against
        if not self._config.gate_reads or not record.exists:
            return record
        self._access.require_any_role_for(
            caller or "", record.receiving_entity_id, record.resource_id,
            record.organization_id, RoleAccess.READ, operation
        )
        return record

    # =========================================================================
    # ROLE INTERFACE
    # =========================================================================

    def create_role(self, caller: Account, subject: Identifier, variant: RoleVariant) -> RoleSet:
        return self._access.create_role(caller, subject, variant)

    def grant_role(
        self,
        caller: Account,
        account: Account,
        subject: Identifier,
        variant: RoleVariant,
        access: RoleAccess
    ) -> bool:
        return self._access.grant_role(caller, account, subject, variant, access)

    def revoke_role(
        self,
        caller: Account,
        account: Account,
        subject: Identifier,
        variant: RoleVariant,
        access: RoleAccess
    ) -> bool:
        return self._access.revoke_role(caller, account, subject, variant, access)

    def renounce_role(
        self,
        caller: Account,
        subject: Identifier,
        variant: RoleVariant,
        access: RoleAccess
    ) -> bool:
        return self._access.renounce_role(caller, subject, variant, access)

    def grant_create_role(self, caller: Account, account: Account) -> bool:
        return self._access.grant_create_role(caller, account)

    def has_any_role_for(
        self,
        account: Account,
        entity_id: Identifier,
        resource_id: Identifier,
        organization_id: Identifier,
        access: RoleAccess
    ) -> bool:
        return self._access.has_any_role_for(
            account, entity_id, resource_id, organization_id, access
        )

    def roles_for(self, subject: Identifier, variant: RoleVariant) -> RoleSet:
        return self._access.roles_for(subject, variant)

    def role_for(self, subject: Identifier, variant: RoleVariant, access: RoleAccess) -> Identifier:
        return self._access.role_for(subject, variant, access)

    # =========================================================================
    # OBSERVABILITY INTERFACE
    # =========================================================================

    def get_audit_log(self) -> List[AuditLogEntry]:
        """Store and access entries merged in timestamp order."""
        entries = self._store_audit.get_entries() + self._access_audit.get_entries()
        return sorted(entries, key=lambda e: e.timestamp.value)

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    @property
    def access(self) -> AccessControl:
        return self._access

    @property
    def store(self) -> RecordStore:
        return self._store

    @property
    def config(self) -> LedgerConfig:
        return self._config
