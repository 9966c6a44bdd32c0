"""
DropMint - Permission Capability

Configuration writes are gated by an injected Authorizer rather than by
inheritance. RoleRegistry is the in-process implementation; anything that
answers is_authorized(role, caller) can replace it.

Usage:
    roles = RoleRegistry(admin="0xadmin...")
    roles.grant_role(admin, Role.CREATOR, "0xcreator...")
    collection = DropCollection(ledger, "drops", authorizer=roles, ...)
"""

import logging
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from errors import UnauthorizedError

logger = logging.getLogger(__name__)


class Role(Enum):
    """
    Roles recognised by collections and registries.

    ADMIN is implicitly authorized for every other role.
    """

    ADMIN = "admin"  # Fee configuration, registry, withdrawals
    CREATOR = "creator"  # Drop configuration, creator recipient
    MINTER = "minter"  # Payment-free admin mints


class Authorizer(ABC):
    """Capability answering whether a caller may act in a role."""

    @abstractmethod
    def is_authorized(self, role: Role, caller: str) -> bool:
        """
        Check a caller against a role.

        Args:
            role: Role required by the operation
            caller: Address attempting the operation

        Returns:
            True if the caller may perform operations gated by `role`
        """
        pass

    def require(self, role: Role, caller: str) -> None:
        """Raise UnauthorizedError unless `caller` is authorized for `role`."""
        if not self.is_authorized(role, caller):
            raise UnauthorizedError(caller, role.value)


class RoleRegistry(Authorizer):
    """In-memory role assignments with an audit trail."""

    def __init__(self, admin: str):
        self._members: dict[Role, set[str]] = {role: set() for role in Role}
        self._members[Role.ADMIN].add(admin)
        self.audit_log: list[dict[str, Any]] = []

    def has_role(self, role: Role, account: str) -> bool:
        return account in self._members[role]

    def is_authorized(self, role: Role, caller: str) -> bool:
        return self.has_role(role, caller) or self.has_role(Role.ADMIN, caller)

    def grant_role(self, caller: str, role: Role, account: str) -> None:
        self.require(Role.ADMIN, caller)
        self._members[role].add(account)
        self._audit("grant", caller=caller, role=role.value, account=account)

    def revoke_role(self, caller: str, role: Role, account: str) -> None:
        self.require(Role.ADMIN, caller)
        if role == Role.ADMIN and self._members[Role.ADMIN] == {account}:
            raise ValueError("Cannot revoke the last administrator")
        self._members[role].discard(account)
        self._audit("revoke", caller=caller, role=role.value, account=account)

    def members(self, role: Role) -> list[str]:
        return sorted(self._members[role])

    def snapshot(self) -> dict[str, Any]:
        return {
            "_members": {role: set(accounts) for role, accounts in self._members.items()},
            "audit_log": list(self.audit_log),
        }

    def restore(self, state: dict[str, Any]) -> None:
        self._members = state["_members"]
        self.audit_log = state["audit_log"]

    def _audit(self, action: str, **kwargs) -> None:
        entry = {"action": action, "timestamp": datetime.now(UTC).isoformat(), **kwargs}
        self.audit_log.append(entry)
        logger.info("Role %s: %s", action, kwargs)
