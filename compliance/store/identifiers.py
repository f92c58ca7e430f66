"""
Record Identifier Derivation
============================

Record ids are content-derived: a digest over every record field plus a
disambiguation offset seeded from the creation timestamp.

A derived id that is already taken is never reused. The offset is
incremented and the digest recomputed until a free id is found, bounded
by `max_attempts`.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Optional
import hashlib
import json

from ..contracts.base import (
    Account, ComputationExhausted, Identifier, IDENTIFIER_WIDTH, Timestamp
)

Digest = Callable[[bytes], bytes]


def sha256_digest(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


@dataclass(frozen=True)
class RecordDraft:
    """Every record field except the id, frozen before derivation."""
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

    def canonical_bytes(self, salt: int) -> bytes:
        content = json.dumps({
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
            'salt': salt,
        }, sort_keys=True, separators=(',', ':'))
        return content.encode('utf-8')


def derive_record_id(draft: RecordDraft, salt: int, digest: Digest = sha256_digest) -> Identifier:
    """Deterministic id for `draft` at disambiguation offset `salt`."""
    raw = digest(draft.canonical_bytes(salt))
    if len(raw) != IDENTIFIER_WIDTH:
        raise ValueError(
            f"Digest must return {IDENTIFIER_WIDTH} bytes, got {len(raw)}"
        )
    return Identifier(value=raw)


@dataclass(frozen=True)
class Allocation:
    record_id: Identifier
    salt: int
    collisions: int


def allocate_record_id(
    draft: RecordDraft,
    is_taken: Callable[[Identifier], bool],
    max_attempts: int,
    digest: Digest = sha256_digest,
    seed: Optional[int] = None
) -> Allocation:
    """
    Find a free id for `draft`.

    The offset starts at `seed` (default: the draft's timestamp in seconds).
    Raises ComputationExhausted after `max_attempts` taken ids; nothing is
    written in that case.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    salt = draft.timestamp.seconds() if seed is None else seed
    for attempt in range(max_attempts):
        candidate = derive_record_id(draft, salt, digest)
        # NONE_ID is the list terminator and can never name a record
        if not candidate.is_none and not is_taken(candidate):
            return Allocation(record_id=candidate, salt=salt, collisions=attempt)
        salt += 1

    raise ComputationExhausted(
        f"No free record id after {max_attempts} attempts",
        context=(
            ("key", draft.key),
            ("nonce", str(draft.nonce)),
            ("attempts", str(max_attempts)),
        )
    )
