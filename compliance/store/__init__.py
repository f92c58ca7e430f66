"""
Record Store Layer

RESPONSIBILITY: Append-only, per-key linked history of immutable records
ALLOWED INPUTS: Authorized append requests from the ledger
OUTPUTS: Record, KeyIndexEntry, StorageWriteResult

WHAT THIS LAYER MUST NOT DO:
============================
- Authorize callers (the ledger does that before calling append)
- Modify or delete a stored record
- Overwrite a record id that is already taken

BOUNDARY ENFORCEMENT:
=====================
- The record table owns every Record
- The per-key index holds only the head id and the list length
- Each append commits the record and its index entry together or not at all
"""

from __future__ import annotations
from typing import Dict, Iterator, List, Optional, Tuple
import errno
import json
import os
import threading

from ..clock import LogicalClock
from ..contracts.base import (
    Account, Error, ErrorCode, Identifier, IntegrityError, NONE_ID,
    StorageWriteError, Timestamp
)
from ..contracts.events import AuditEventType
from ..contracts.records import KeyIndexEntry, Record, StorageWriteResult
from ..observability import LogCollector, MetricsCollector
from .identifiers import (
    Digest, RecordDraft, allocate_record_id, derive_record_id, sha256_digest
)


# =============================================================================
# STORAGE INTERFACES (Dependency Inversion)
# =============================================================================

class RecordBackend:
    """
    Abstract record backend.

    Implementations keep the same append-only semantics: a record id,
    once written, is never written again.
    """

    def write_record(self, record: Record, index_entry: KeyIndexEntry) -> StorageWriteResult:
        """Commit a record and its key's new index entry together."""
        raise NotImplementedError

    def get_record(self, record_id: Identifier) -> Optional[Record]:
        raise NotImplementedError

    def get_index(self, key: str) -> Optional[KeyIndexEntry]:
        raise NotImplementedError

    def contains(self, record_id: Identifier) -> bool:
        raise NotImplementedError

    def keys(self) -> List[str]:
        raise NotImplementedError

    @property
    def record_count(self) -> int:
        raise NotImplementedError


# =============================================================================
# IN-MEMORY BACKEND (Reference Implementation)
# =============================================================================

class InMemoryRecordBackend(RecordBackend):
    """
    In-memory record table and key index.

    Lifetime is the owning ledger's lifetime.
    """

    def __init__(self):
        self._records: Dict[Identifier, Record] = {}
        self._index: Dict[str, KeyIndexEntry] = {}

    def write_record(self, record: Record, index_entry: KeyIndexEntry) -> StorageWriteResult:
        if record.id in self._records:
            return _duplicate_write(record)

        self._records[record.id] = record
        self._index[record.key] = index_entry

        return StorageWriteResult(
            success=True,
            record_id=record.id,
            write_timestamp=Timestamp.now()
        )

    def get_record(self, record_id: Identifier) -> Optional[Record]:
        return self._records.get(record_id)

    def get_index(self, key: str) -> Optional[KeyIndexEntry]:
        return self._index.get(key)

    def contains(self, record_id: Identifier) -> bool:
        return record_id in self._records

    def keys(self) -> List[str]:
        return list(self._index.keys())

    @property
    def record_count(self) -> int:
        return len(self._records)


# =============================================================================
# FILE-BASED BACKEND
# =============================================================================

class FileRecordBackend(InMemoryRecordBackend):
    """
    Append-only JSON Lines journal with in-memory indices.

    One line per record. Indices are rebuilt on open, and every loaded
    record is re-verified (derived id, nonce and predecessor link).
    """

    FILENAME = "records.jsonl"

    def __init__(self, storage_dir: str, digest: Digest = sha256_digest):
        super().__init__()
        self._storage_dir = storage_dir
        self._records_file = os.path.join(storage_dir, self.FILENAME)
        self._digest = digest

        os.makedirs(storage_dir, exist_ok=True)
        self._rebuild_indices()

    @property
    def path(self) -> str:
        return self._records_file

    def _rebuild_indices(self):
        """Replay the journal, verifying each line against the state so far."""
        if not os.path.exists(self._records_file):
            return

        with open(self._records_file, 'r', encoding='utf-8') as f:
            for line_number, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    record = Record.from_dict(json.loads(line))
                except (ValueError, KeyError) as e:
                    raise IntegrityError(
                        f"Unreadable journal line {line_number}: {e}",
                        context=(("line", str(line_number)),)
                    ) from e
                self._load_verified(record, line_number)

    def _load_verified(self, record: Record, line_number: int):
        index = self._index.get(record.key, KeyIndexEntry.missing())
        expected_previous = index.head if index.exists else NONE_ID
        context = (("line", str(line_number)), ("record_id", record.id.hex()))

        if record.nonce != index.length:
            raise IntegrityError(
                f"Invalid nonce at line {line_number}: expected {index.length}, got {record.nonce}",
                context=context
            )
        if record.previous != expected_previous:
            raise IntegrityError(
                f"Broken link at line {line_number}: previous {record.previous} != head {expected_previous}",
                context=context
            )
        if _rederive(record, self._digest) != record.id:
            raise IntegrityError(
                f"Corrupt record at line {line_number}: id mismatch",
                context=context
            )
        if record.id in self._records:
            raise IntegrityError(
                f"Duplicate record id at line {line_number}",
                context=context
            )

        self._records[record.id] = record
        self._index[record.key] = index.advance(record.id)

    def write_record(self, record: Record, index_entry: KeyIndexEntry) -> StorageWriteResult:
        if record.id in self._records:
            return _duplicate_write(record)

        line = (json.dumps(record.to_dict(), sort_keys=True) + '\n').encode('utf-8')
        try:
            with open(self._records_file, 'ab', buffering=0) as f:
                offset = f.tell()
                try:
                    if f.write(line) != len(line):
                        raise OSError(errno.EIO, "Short write to record journal")
                    os.fsync(f.fileno())
                except OSError:
                    # Drop the partial line: one complete record per line
                    f.truncate(offset)
                    raise
        except OSError as e:
            return StorageWriteResult(
                success=False,
                error=Error(
                    code=ErrorCode.STORAGE_WRITE_FAILED,
                    message=f"Failed to write record: {e}",
                    timestamp=Timestamp.now().value,
                    context=(("record_id", record.id.hex()),)
                )
            )

        # Journal line is synced to disk; now publish it in memory
        return super().write_record(record, index_entry)


def _duplicate_write(record: Record) -> StorageWriteResult:
    return StorageWriteResult(
        success=False,
        error=Error(
            code=ErrorCode.STORAGE_WRITE_FAILED,
            message="Record id already exists; records are immutable",
            timestamp=Timestamp.now().value,
            context=(("record_id", record.id.hex()),)
        )
    )


def _rederive(record: Record, digest: Digest) -> Identifier:
    draft = RecordDraft(
        key=record.key,
        receiving_entity_id=record.receiving_entity_id,
        resource_id=record.resource_id,
        organization_id=record.organization_id,
        ref=record.ref,
        status=record.status,
        owner=record.owner,
        status_issue_date=record.status_issue_date,
        timestamp=record.timestamp,
        nonce=record.nonce,
        previous=record.previous
    )
    return derive_record_id(draft, record.salt, digest)


# =============================================================================
# RECORD STORE (Orchestrates appends and lookups)
# =============================================================================

class RecordStore:
    """
    Append-only record store with per-key backward linked lists.

    GUARANTEES:
    ===========
    1. get_latest is O(1): the index holds the head id
    2. history is O(list length) lookups via `previous`
    3. No two appends ever receive the same id
    4. append is all-or-nothing
    """

    def __init__(
        self,
        backend: Optional[RecordBackend] = None,
        clock: Optional[LogicalClock] = None,
        digest: Digest = sha256_digest,
        max_id_attempts: int = 1024,
        audit: Optional[LogCollector] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self._backend = backend or InMemoryRecordBackend()
        self._clock = clock or LogicalClock.live()
        self._digest = digest
        self._max_id_attempts = max_id_attempts
        self._audit = audit or LogCollector("store")
        self._metrics = metrics or MetricsCollector()

        # Per-key mutual exclusion for the read-then-write of the index,
        # plus one lock over the shared record table.
        self._key_locks: Dict[str, threading.Lock] = {}
        self._key_locks_guard = threading.Lock()
        self._table_lock = threading.Lock()

    def _lock_for(self, key: str) -> threading.Lock:
        with self._key_locks_guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._key_locks[key] = lock
            return lock

    def append(
        self,
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
        Append a record to `key`'s list and return its id.

        Raises ComputationExhausted if no free id is found within the
        attempt bound, StorageWriteError if the backend rejects the write.
        Either way nothing is changed.
        """
        with self._lock_for(key):
            index = self._backend.get_index(key) or KeyIndexEntry.missing()
            draft = RecordDraft(
                key=key,
                receiving_entity_id=receiving_entity_id,
                resource_id=resource_id,
                organization_id=organization_id,
                ref=ref,
                status=status,
                owner=owner,
                status_issue_date=status_issue_date,
                timestamp=self._clock.timestamp(),
                nonce=index.length,
                previous=index.head if index.exists else NONE_ID
            )

            with self._table_lock:
                allocation = allocate_record_id(
                    draft,
                    is_taken=self._backend.contains,
                    max_attempts=self._max_id_attempts,
                    digest=self._digest
                )
                record = Record(
                    id=allocation.record_id,
                    key=draft.key,
                    receiving_entity_id=draft.receiving_entity_id,
                    resource_id=draft.resource_id,
                    organization_id=draft.organization_id,
                    ref=draft.ref,
                    status=draft.status,
                    owner=draft.owner,
                    status_issue_date=draft.status_issue_date,
                    timestamp=draft.timestamp,
                    nonce=draft.nonce,
                    previous=draft.previous,
                    salt=allocation.salt
                )
                result = self._backend.write_record(record, index.advance(record.id))

        if not result.success:
            error = result.error
            raise StorageWriteError(
                error.message if error else "Backend rejected record",
                context=error.context if error else (("record_id", record.id.hex()),)
            )

        if allocation.collisions:
            self._metrics.record("record_id_collisions_total", float(allocation.collisions))
            self._audit.log(
                action="id_collision",
                event_type=AuditEventType.RECORD,
                entity_id=record.id.hex(),
                metadata=(("key", key), ("collisions", str(allocation.collisions)))
            )

        self._metrics.increment("records_appended_total")
        self._metrics.record("records_stored", float(self._backend.record_count))
        self._audit.log(
            action="record_appended",
            event_type=AuditEventType.RECORD,
            entity_id=record.id.hex(),
            metadata=(
                ("key", key),
                ("nonce", str(record.nonce)),
                ("previous", record.previous.hex()),
            )
        )
        return record.id

    def get_entry(self, record_id: Identifier) -> Record:
        """Stored record, or Record.missing() if the id was never written."""
        return self._backend.get_record(record_id) or Record.missing()

    def get_latest(self, key: str) -> Record:
        """Head record of `key`, or Record.missing() for an unused key."""
        index = self._backend.get_index(key)
        if index is None or not index.exists:
            return Record.missing()
        return self.get_entry(index.head)

    def get_index(self, key: str) -> KeyIndexEntry:
        return self._backend.get_index(key) or KeyIndexEntry.missing()

    def history(self, key: str) -> Iterator[Record]:
        """Newest to oldest, following `previous` until a miss."""
        current = self.get_latest(key)
        while current.exists:
            yield current
            current = self.get_entry(current.previous)

    @property
    def record_count(self) -> int:
        return self._backend.record_count

    def verify_chain(self, key: str) -> Tuple[bool, Optional[Error]]:
        """
        Walk `key`'s history re-deriving ids and checking links.

        Returns (is_valid, error). Error carries the offending record.
        """
        index = self.get_index(key)
        expected_nonce = index.length - 1
        seen = 0

        for record in self.history(key):
            if seen >= index.length:
                return (False, _inconsistency(
                    key, f"More than {index.length} records reachable", record.id
                ))

            problem = None
            if record.key != key:
                problem = f"Record filed under {record.key!r}"
            elif record.nonce != expected_nonce:
                problem = f"Nonce {record.nonce} where {expected_nonce} expected"
            elif _rederive(record, self._digest) != record.id:
                problem = "Record id does not match its content"
            elif record.nonce == 0 and not record.previous.is_none:
                problem = "First record links to a predecessor"

            if problem:
                return (False, _inconsistency(key, problem, record.id))

            expected_nonce -= 1
            seen += 1

        if seen != index.length:
            return (False, _inconsistency(
                key, f"Reached {seen} records, index says {index.length}", index.head
            ))

        return (True, None)

    def state_hash(self) -> str:
        """
        Deterministic digest of every key's head and length.

        Same appends (same clock, same digest) -> same hash.
        """
        heads = []
        for key in sorted(self._backend.keys()):
            entry = self.get_index(key)
            heads.append([key, entry.head.hex(), entry.length])
        content = json.dumps({
            'heads': heads,
            'record_count': self.record_count
        }, sort_keys=True)
        return self._digest(content.encode('utf-8')).hex()

    @property
    def backend(self) -> RecordBackend:
        return self._backend

    @property
    def audit(self) -> LogCollector:
        return self._audit


def _inconsistency(key: str, message: str, record_id: Identifier) -> Error:
    return Error(
        code=ErrorCode.STRUCTURAL_INCONSISTENCY,
        message=f"Chain for {key!r} broken: {message}",
        timestamp=Timestamp.now().value,
        context=(("key", key), ("record_id", record_id.hex()))
    )
