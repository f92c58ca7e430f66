"""
Integration Test Fixtures

Explicit, deterministic fixtures shared by all test layers.
No random generation: clocks replay fixed ticks.
"""

from datetime import datetime, timedelta, timezone
import hashlib

from compliance import ComplianceLedger, LedgerConfig, LogicalClock, RoleAccess
from compliance.contracts.base import Identifier, Timestamp


# =============================================================================
# FIXED TIMESTAMPS (deterministic)
# =============================================================================

EPOCH = datetime(2026, 1, 1, 0, 0, 0, tzinfo=timezone.utc)
ISSUE_DATE = Timestamp(value=datetime(2025, 12, 1, 9, 0, 0, tzinfo=timezone.utc))


def make_clock(ticks: int = 64, start: datetime = EPOCH) -> LogicalClock:
    """Replay clock with `ticks` one-second steps."""
    return LogicalClock.from_ticks(start + timedelta(seconds=i) for i in range(ticks))


# =============================================================================
# ACCOUNTS AND IDENTIFIERS
# =============================================================================

ADMIN = "0xadmin"
ALICE = "0xa11ce"
BOB = "0xb0b"

E0 = Identifier.from_text("entity-0")
E9 = Identifier.from_text("entity-9")
R1 = Identifier.from_text("resource-1")
R2 = Identifier.from_text("resource-2")
O0 = Identifier.from_text("org-0")
O9 = Identifier.from_text("org-9")
S1 = Identifier.from_text("APPROVED")
S2 = Identifier.from_text("REVOKED")


# =============================================================================
# DIGESTS
# =============================================================================

def weak_digest(data: bytes) -> bytes:
    """256 possible outputs: forces collisions well before exhaustion."""
    return bytes([hashlib.sha256(data).digest()[0]]).rjust(32, b'\x01')


def tiny_digest(data: bytes) -> bytes:
    """16 possible outputs: the 17th record can never be placed."""
    return bytes([hashlib.sha256(data).digest()[0] % 16]).rjust(32, b'\x01')


def constant_digest(data: bytes) -> bytes:
    return b'\x07' * 32


# =============================================================================
# LEDGER FACTORIES
# =============================================================================

def make_ledger(config: LedgerConfig = None, ticks: int = 64, digest=None) -> ComplianceLedger:
    kwargs = {"clock": make_clock(ticks)}
    if digest is not None:
        kwargs["digest"] = digest
    return ComplianceLedger(ADMIN, config=config, **kwargs)


def grant_write(ledger: ComplianceLedger, account: str, subject: Identifier, variant) -> None:
    """Create the role set, make ADMIN its administrator, grant WRITE."""
    ledger.create_role(ADMIN, subject, variant)
    ledger.grant_role(ADMIN, ADMIN, subject, variant, RoleAccess.ADMIN)
    ledger.grant_role(ADMIN, account, subject, variant, RoleAccess.WRITE)


def append(ledger: ComplianceLedger, caller: str, key: str = "k1", *,
           entity: Identifier = E0, resource: Identifier = R1,
           organization: Identifier = O0, status: Identifier = S1,
           ref: str = "https://docs.example.org/cert.pdf", owner: str = BOB) -> Identifier:
    return ledger.add_entry(
        caller,
        key=key,
        receiving_entity_id=entity,
        resource_id=resource,
        organization_id=organization,
        ref=ref,
        status=status,
        status_issue_date=ISSUE_DATE,
        owner=owner
    )
