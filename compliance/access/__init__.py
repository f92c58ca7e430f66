"""
Access Control Layer

RESPONSIBILITY: Capability tokens per (id, variant, access) and their grants
ALLOWED INPUTS: Role operations with an explicit caller account
OUTPUTS: RoleSet, token identifiers, authorization decisions

WHAT THIS LAYER MUST NOT DO:
============================
- Touch the record store
- Grant anything the caller does not administer
- Fail silently: every denial is audited and raised

DELEGATION GRAPH:
=================
Tokens are nodes of a directed graph; an edge A -> B means holders of A
administer B. DEFAULT_ADMIN is the root and administers CREATE and every
ADMIN token. Each ADMIN token administers the READ and WRITE tokens of
its own (id, variant). Tokens without an incoming edge fall back to
DEFAULT_ADMIN.
"""

from __future__ import annotations
from typing import Dict, FrozenSet, List, Optional, Set, Tuple
import threading

import networkx as nx

from ..contracts.base import Account, Identifier, UnauthorizedAccount
from ..contracts.events import AuditEventType
from ..contracts.roles import (
    CREATE_ROLE, DEFAULT_ADMIN_ROLE, RoleAccess, RoleSet, RoleVariant,
    derive_role_token
)
from ..observability import LogCollector, MetricsCollector


class AccessControl:
    """
    Granular RBAC over entity, resource and organization identifiers.

    The initialising account receives DEFAULT_ADMIN and CREATE; every
    other capability descends from those two.
    """

    def __init__(
        self,
        admin: Account,
        audit: Optional[LogCollector] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self._audit = audit or LogCollector("access")
        self._metrics = metrics or MetricsCollector()
        self._members: Dict[Identifier, Set[Account]] = {}
        self._graph = nx.DiGraph()
        self._lock = threading.RLock()

        self._graph.add_node(DEFAULT_ADMIN_ROLE)
        self._graph.add_edge(DEFAULT_ADMIN_ROLE, CREATE_ROLE)

        self._grant(DEFAULT_ADMIN_ROLE, admin)
        self._grant(CREATE_ROLE, admin)
        self._audit.log(
            action="access_initialized",
            event_type=AuditEventType.SYSTEM,
            entity_id=admin
        )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def has_role(self, token: Identifier, account: Account) -> bool:
        return account in self._members.get(token, ())

    def has_access(
        self,
        account: Account,
        subject: Identifier,
        variant: RoleVariant,
        access: RoleAccess
    ) -> bool:
        return self.has_role(derive_role_token(subject, variant, access), account)

    def has_any_role_for(
        self,
        account: Account,
        entity_id: Identifier,
        resource_id: Identifier,
        organization_id: Identifier,
        access: RoleAccess
    ) -> bool:
        """True if ANY of the three identifiers grants `access` in its namespace."""
        return (
            self.has_access(account, entity_id, RoleVariant.ENTITY, access)
            or self.has_access(account, resource_id, RoleVariant.RESOURCE, access)
            or self.has_access(account, organization_id, RoleVariant.ORGANIZATION, access)
        )

    def roles_for(self, subject: Identifier, variant: RoleVariant) -> RoleSet:
        return RoleSet.derive(subject, variant)

    def role_for(self, subject: Identifier, variant: RoleVariant, access: RoleAccess) -> Identifier:
        return derive_role_token(subject, variant, access)

    def get_role_admin(self, token: Identifier) -> Identifier:
        if token in self._graph:
            for admin in self._graph.predecessors(token):
                return admin
        return DEFAULT_ADMIN_ROLE

    def is_role_created(self, subject: Identifier, variant: RoleVariant) -> bool:
        roles = RoleSet.derive(subject, variant)
        return self._graph.has_edge(roles.admin, roles.write)

    def members(self, token: Identifier) -> FrozenSet[Account]:
        return frozenset(self._members.get(token, ()))

    def admin_chain(self, token: Identifier) -> List[Identifier]:
        """
        Administrator path from DEFAULT_ADMIN down to `token`.

        e.g. [DEFAULT_ADMIN, ADMIN(R1), WRITE(R1)] for a created role set.
        """
        if token == DEFAULT_ADMIN_ROLE:
            return [DEFAULT_ADMIN_ROLE]
        if token not in self._graph:
            return [DEFAULT_ADMIN_ROLE, token]
        try:
            return nx.shortest_path(self._graph, source=DEFAULT_ADMIN_ROLE, target=token)
        except nx.NetworkXNoPath:
            return [self.get_role_admin(token), token]

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def create_role(self, caller: Account, subject: Identifier, variant: RoleVariant) -> RoleSet:
        """
        Establish the READ/WRITE/ADMIN tokens of (subject, variant).

        Requires CREATE. Re-running derives the same tokens and keeps grants.
        """
        self._require(
            CREATE_ROLE, caller, "create_role",
            (("id", subject.hex()), ("variant", variant.value), ("role", "CREATE"))
        )

        roles = RoleSet.derive(subject, variant)
        with self._lock:
            self._set_role_admin(roles.admin, DEFAULT_ADMIN_ROLE)
            self._set_role_admin(roles.read, roles.admin)
            self._set_role_admin(roles.write, roles.admin)

        self._metrics.increment("roles_created_total", {"variant": variant.value})
        self._audit.log(
            action="role_created",
            event_type=AuditEventType.ROLE,
            entity_id=subject.hex(),
            metadata=(("variant", variant.value), ("caller", caller))
        )
        return roles

    def grant_role(
        self,
        caller: Account,
        account: Account,
        subject: Identifier,
        variant: RoleVariant,
        access: RoleAccess
    ) -> bool:
        """Grant one token. Returns False if `account` already held it."""
        token = self._authorize_admin(caller, "grant_role", subject, variant, access)
        with self._lock:
            changed = self._grant(token, account)

        self._audit.log(
            action="role_granted",
            event_type=AuditEventType.ROLE,
            entity_id=subject.hex(),
            metadata=_grant_metadata(caller, account, variant, access, changed)
        )
        return changed

    def revoke_role(
        self,
        caller: Account,
        account: Account,
        subject: Identifier,
        variant: RoleVariant,
        access: RoleAccess
    ) -> bool:
        """Revoke one token. Returns False if `account` did not hold it."""
        token = self._authorize_admin(caller, "revoke_role", subject, variant, access)
        with self._lock:
            changed = self._revoke(token, account)

        self._audit.log(
            action="role_revoked",
            event_type=AuditEventType.ROLE,
            entity_id=subject.hex(),
            metadata=_grant_metadata(caller, account, variant, access, changed)
        )
        return changed

    def renounce_role(
        self,
        caller: Account,
        subject: Identifier,
        variant: RoleVariant,
        access: RoleAccess
    ) -> bool:
        """Drop the caller's own grant. Needs no administrator."""
        token = derive_role_token(subject, variant, access)
        with self._lock:
            changed = self._revoke(token, caller)

        self._audit.log(
            action="role_renounced",
            event_type=AuditEventType.ROLE,
            entity_id=subject.hex(),
            metadata=_grant_metadata(caller, caller, variant, access, changed)
        )
        return changed

    def grant_create_role(self, caller: Account, account: Account) -> bool:
        """Pass the CREATE capability on. Requires CREATE."""
        self._require(CREATE_ROLE, caller, "grant_create_role", (("role", "CREATE"),))
        with self._lock:
            changed = self._grant(CREATE_ROLE, account)

        self._audit.log(
            action="create_role_granted",
            event_type=AuditEventType.ROLE,
            entity_id=account,
            metadata=(("caller", caller), ("changed", str(changed)))
        )
        return changed

    # -------------------------------------------------------------------------
    # Enforcement
    # -------------------------------------------------------------------------

    def require_any_role_for(
        self,
        account: Account,
        entity_id: Identifier,
        resource_id: Identifier,
        organization_id: Identifier,
        access: RoleAccess,
        operation: str
    ) -> None:
        """Raise UnauthorizedAccount unless has_any_role_for holds."""
        if self.has_any_role_for(account, entity_id, resource_id, organization_id, access):
            return
        self._deny(
            account,
            operation,
            (
                ("entity_id", entity_id.hex()),
                ("resource_id", resource_id.hex()),
                ("organization_id", organization_id.hex()),
                ("access", access.value),
            )
        )

    def _authorize_admin(
        self,
        caller: Account,
        operation: str,
        subject: Identifier,
        variant: RoleVariant,
        access: RoleAccess
    ) -> Identifier:
        token = derive_role_token(subject, variant, access)
        admin = self.get_role_admin(token)
        self._require(
            admin, caller, operation,
            (("id", subject.hex()), ("variant", variant.value), ("access", access.value))
        )
        return token

    def _require(
        self,
        token: Identifier,
        caller: Account,
        operation: str,
        context: Tuple[Tuple[str, str], ...]
    ) -> None:
        if not self.has_role(token, caller):
            self._deny(caller, operation, context)

    def _deny(
        self,
        account: Account,
        operation: str,
        context: Tuple[Tuple[str, str], ...]
    ) -> None:
        context = (("account", account), ("operation", operation)) + tuple(context)
        self._metrics.increment("access_denied_total", {"operation": operation})
        self._audit.log(
            action="access_denied",
            event_type=AuditEventType.ACCESS_DENIED,
            entity_id=account,
            metadata=context
        )
        missing = ", ".join(f"{k}={v}" for k, v in context[2:])
        raise UnauthorizedAccount(
            f"Account {account!r} is not authorized to {operation} ({missing})",
            context=context
        )

    def _set_role_admin(self, token: Identifier, admin: Identifier):
        if token in self._graph:
            for previous in list(self._graph.predecessors(token)):
                self._graph.remove_edge(previous, token)
        self._graph.add_edge(admin, token)

    def _grant(self, token: Identifier, account: Account) -> bool:
        members = self._members.setdefault(token, set())
        if account in members:
            return False
        members.add(account)
        return True

    def _revoke(self, token: Identifier, account: Account) -> bool:
        members = self._members.get(token)
        if not members or account not in members:
            return False
        members.discard(account)
        return True

    @property
    def audit(self) -> LogCollector:
        return self._audit


def _grant_metadata(
    caller: Account,
    account: Account,
    variant: RoleVariant,
    access: RoleAccess,
    changed: bool
) -> Tuple[Tuple[str, str], ...]:
    return (
        ("caller", caller),
        ("account", account),
        ("variant", variant.value),
        ("access", access.value),
        ("changed", str(changed)),
    )
