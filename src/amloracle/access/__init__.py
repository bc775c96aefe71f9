"""Access control — role registry and the RoleGated capability."""

from amloracle.access.roles import (
    ADMIN_ROLE,
    OPERATOR_ROLE,
    RECOVER_ROLE_LABEL,
    RECOVER_TOKENS_ROLE_LABEL,
    RoleGated,
    RoleRegistry,
    role_id,
)

__all__ = [
    "ADMIN_ROLE",
    "OPERATOR_ROLE",
    "RECOVER_ROLE_LABEL",
    "RECOVER_TOKENS_ROLE_LABEL",
    "RoleGated",
    "RoleRegistry",
    "role_id",
]
