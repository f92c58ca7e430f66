"""
Record Contracts

Immutable records and the per-key index entry of the record store.

INVARIANTS:
- Once written, a Record is never modified or removed.
- Records of one key form a backward linked list via `previous`,
  terminating at the record whose `previous` is NONE_ID.
- `exists` only distinguishes "never written" from "written".
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .base import Account, Error, Identifier, NONE_ID, Timestamp


@dataclass(frozen=True)
class Record:
    """
    Immutable unit of history.

    `status_issue_date` is supplied by the caller (effective date),
    `timestamp` is assigned by the store (creation time).
    """
    id: Identifier
    key: str
    receiving_entity_id: Identifier
    resource_id: Identifier
    organization_id: Identifier
    ref: str
    status: Identifier
    owner: Account
    status_issue_date: Timestamp
    timestamp: Timestamp
    nonce: int
    previous: Identifier
    salt: int
    exists: bool = True

    @staticmethod
    def missing() -> Record:
        """Zero-valued lookup miss."""
        epoch = Timestamp.epoch()
        return Record(
            id=NONE_ID,
            key="",
            receiving_entity_id=NONE_ID,
            resource_id=NONE_ID,
            organization_id=NONE_ID,
            ref="",
            status=NONE_ID,
            owner="",
            status_issue_date=epoch,
            timestamp=epoch,
            nonce=0,
            previous=NONE_ID,
            salt=0,
            exists=False
        )

    @property
    def is_first(self) -> bool:
        return self.exists and self.previous.is_none

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id.hex(),
            'key': self.key,
            'receiving_entity_id': self.receiving_entity_id.hex(),
            'resource_id': self.resource_id.hex(),
            'organization_id': self.organization_id.hex(),
            'ref': self.ref,
            'status': self.status.hex(),
            'owner': self.owner,
            'status_issue_date': self.status_issue_date.to_iso(),
            'timestamp': self.timestamp.to_iso(),
            'nonce': self.nonce,
            'previous': self.previous.hex(),
            'salt': self.salt,
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> Record:
        return Record(
            id=Identifier.from_hex(data['id']),
            key=data['key'],
            receiving_entity_id=Identifier.from_hex(data['receiving_entity_id']),
            resource_id=Identifier.from_hex(data['resource_id']),
            organization_id=Identifier.from_hex(data['organization_id']),
            ref=data['ref'],
            status=Identifier.from_hex(data['status']),
            owner=data['owner'],
            status_issue_date=Timestamp.from_iso(data['status_issue_date']),
            timestamp=Timestamp.from_iso(data['timestamp']),
            nonce=int(data['nonce']),
            previous=Identifier.from_hex(data['previous']),
            salt=int(data['salt']),
        )


@dataclass(frozen=True)
class KeyIndexEntry:
    """
    Per-key index entry: current head and total records ever appended.

    Holds the head by identifier only; the record table owns the records.
    """
    head: Identifier
    length: int
    exists: bool = True

    @staticmethod
    def missing() -> KeyIndexEntry:
        return KeyIndexEntry(head=NONE_ID, length=0, exists=False)

    def advance(self, new_head: Identifier) -> KeyIndexEntry:
        """Return the entry after appending `new_head` (immutable)."""
        return KeyIndexEntry(head=new_head, length=self.length + 1, exists=True)


@dataclass(frozen=True)
class StorageWriteResult:
    """Result of a backend write."""
    success: bool
    record_id: Optional[Identifier] = None
    error: Optional[Error] = None
    write_timestamp: Optional[Timestamp] = None
