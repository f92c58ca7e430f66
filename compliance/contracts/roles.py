"""
Role Contracts

Capability tokens are derived values, not stored objects:
the same (id, variant, access) always yields the same token.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
import hashlib
import json

from .base import Identifier, NONE_ID


class RoleVariant(Enum):
    """Identifier namespace a role set belongs to."""
    ENTITY = "entity"
    RESOURCE = "resource"
    ORGANIZATION = "organization"


class RoleAccess(Enum):
    """Independent access levels. Holding one implies nothing about the others."""
    READ = "read"
    WRITE = "write"
    ADMIN = "admin"


# Global tokens
DEFAULT_ADMIN_ROLE = NONE_ID
CREATE_ROLE = Identifier(value=hashlib.sha256(b"CREATE_ROLE").digest())


def derive_role_token(subject: Identifier, variant: RoleVariant, access: RoleAccess) -> Identifier:
    """Deterministic token for one (id, variant, access) combination."""
    content = json.dumps(
        ['role', subject.hex(), variant.value, access.value],
        separators=(',', ':')
    )
    return Identifier(value=hashlib.sha256(content.encode('utf-8')).digest())


@dataclass(frozen=True)
class RoleSet:
    """The three capability tokens of one (id, variant) pair."""
    subject: Identifier
    variant: RoleVariant
    read: Identifier
    write: Identifier
    admin: Identifier

    @staticmethod
    def derive(subject: Identifier, variant: RoleVariant) -> RoleSet:
        return RoleSet(
            subject=subject,
            variant=variant,
            read=derive_role_token(subject, variant, RoleAccess.READ),
            write=derive_role_token(subject, variant, RoleAccess.WRITE),
            admin=derive_role_token(subject, variant, RoleAccess.ADMIN)
        )

    def token(self, access: RoleAccess) -> Identifier:
        if access is RoleAccess.READ:
            return self.read
        if access is RoleAccess.WRITE:
            return self.write
        return self.admin
