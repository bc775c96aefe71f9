"""Role registry — named permission sets with self-administering membership.

Role identifiers are 32-byte values rendered as 0x-prefixed hex strings.
ADMIN_ROLE is the all-zero identifier; every other role is the Keccak-256
hash of a label, so identifiers match the ones client applications
compute on their side (e.g. keccak("RECOVER_ROLE")).

Each role has an admin role. Only holders of a role's admin role may
grant or revoke it. ADMIN_ROLE is its own admin. Every role defaults to
ADMIN_ROLE as its admin.

Principals are held in canonical form, so a hex address matches in any
letter case.

Keeping at least one ADMIN_ROLE holder is the caller's discipline: the
registry will let the last admin revoke or renounce themselves.
"""

from __future__ import annotations

import copy
from typing import Any, Protocol, runtime_checkable

from web3 import Web3

from amloracle.errors import NotFound, Unauthorized
from amloracle.models.identity import canonical_identity

ADMIN_ROLE = "0x" + "00" * 32


def role_id(label: str) -> str:
    """Keccak-256 of a role label, as 0x-prefixed lowercase hex."""
    return Web3.to_hex(Web3.keccak(text=label))


OPERATOR_ROLE = role_id("OPERATOR_ROLE")

# Recovery role labels differ between deployment variants.
RECOVER_ROLE_LABEL = "RECOVER_ROLE"
RECOVER_TOKENS_ROLE_LABEL = "recoverTokens()"


class RoleRegistry:
    """In-memory role membership with insertion-ordered member lists.

    Usage:
        roles = RoleRegistry()
        roles.seed(ADMIN_ROLE, "alice")
        roles.grant("alice", OPERATOR_ROLE, "bob")
        roles.has_role(OPERATOR_ROLE, "bob")   # True
        roles.member(OPERATOR_ROLE, 0)         # "bob"
    """

    def __init__(self) -> None:
        self._members: dict[str, list[str]] = {}
        self._admins: dict[str, str] = {}

    def seed(self, role: str, principal: str) -> None:
        """Grant a role without an authorization check.

        Only for construction-time setup, before any caller exists.
        """
        principal = canonical_identity(principal)
        members = self._members.setdefault(role, [])
        if principal not in members:
            members.append(principal)

    def grant(self, caller: str, role: str, principal: str) -> bool:
        """Grant role to principal. Returns True if membership changed."""
        self._require_admin(caller, role, "grant")
        principal = canonical_identity(principal)
        members = self._members.setdefault(role, [])
        if principal in members:
            return False
        members.append(principal)
        return True

    def revoke(self, caller: str, role: str, principal: str) -> bool:
        """Revoke role from principal. Returns True if membership changed."""
        self._require_admin(caller, role, "revoke")
        return self._remove(role, principal)

    def renounce(self, caller: str, role: str, principal: str) -> bool:
        """Drop one's own role. principal must be the caller."""
        if canonical_identity(caller) != canonical_identity(principal):
            raise Unauthorized("Roles can only be renounced for self")
        return self._remove(role, principal)

    def has_role(self, role: str, principal: str) -> bool:
        return canonical_identity(principal) in self._members.get(role, ())

    def require(self, role: str, caller: str, message: str) -> None:
        """Raise Unauthorized with the given message unless caller holds role."""
        if not self.has_role(role, caller):
            raise Unauthorized(message, role=role, caller=caller)

    def members(self, role: str) -> tuple[str, ...]:
        return tuple(self._members.get(role, ()))

    def member(self, role: str, index: int) -> str:
        """Return the index-th holder of role, in grant order."""
        members = self._members.get(role, [])
        if index < 0 or index >= len(members):
            raise NotFound(f"Role has no member at index {index}", role=role)
        return members[index]

    def member_count(self, role: str) -> int:
        return len(self._members.get(role, ()))

    def admin_of(self, role: str) -> str:
        return self._admins.get(role, ADMIN_ROLE)

    def set_admin(self, caller: str, role: str, admin_role: str) -> str:
        """Change the admin role of role. Returns the previous admin role."""
        self._require_admin(caller, role, "change the admin of")
        previous = self.admin_of(role)
        self._admins[role] = admin_role
        return previous

    def snapshot(self) -> dict[str, Any]:
        return {
            "members": copy.deepcopy(self._members),
            "admins": dict(self._admins),
        }

    def restore(self, state: dict[str, Any]) -> None:
        self._members = {
            r: [canonical_identity(p) for p in m] for r, m in state.get("members", {}).items()
        }
        self._admins = dict(state.get("admins", {}))

    def _require_admin(self, caller: str, role: str, action: str) -> None:
        if not self.has_role(self.admin_of(role), caller):
            raise Unauthorized(
                f"Caller must hold the admin role to {action} this role",
                role=role,
                caller=caller,
            )

    def _remove(self, role: str, principal: str) -> bool:
        principal = canonical_identity(principal)
        members = self._members.get(role)
        if not members or principal not in members:
            return False
        members.remove(principal)
        return True


@runtime_checkable
class RoleGated(Protocol):
    """Capability shared by every registry deployment variant.

    Implemented independently by each concrete registry rather than
    inherited: role management plus stray-asset recovery, with the
    recovery role identifier supplied by configuration.
    """

    @property
    def recover_role(self) -> str:
        """Role identifier that gates recover()."""
        ...

    def has_role(self, role: str, principal: str) -> bool:
        ...

    def grant_role(self, caller: str, role: str, principal: str) -> Any:
        ...

    def revoke_role(self, caller: str, role: str, principal: str) -> Any:
        ...

    def recover(self, caller: str, asset: str) -> Any:
        ...
