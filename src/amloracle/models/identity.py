"""Identity helpers — the null-identity sentinel, validation and canonical form.

Identities are opaque strings (typically 0x-prefixed addresses). The
null identity represents "no one": it can never be a status record's
client, the fee account, or an escrow holder.

A 0x-prefixed 20-byte hex address names the same account in any letter
case (checksummed or not), so such addresses are compared and stored in
lowercase. Any other identity string is compared exactly.
"""

from __future__ import annotations

import re
from typing import Optional

from amloracle.errors import InvalidClient

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

_ADDRESS_RE = re.compile(r"^0[xX][0-9a-fA-F]{40}$")


def canonical_identity(identity: Optional[str]) -> str:
    """Stripped identity, lowercased when it is a hex address."""
    if identity is None:
        return ""
    stripped = identity.strip()
    if _ADDRESS_RE.match(stripped):
        return stripped.lower()
    return stripped


def same_identity(a: Optional[str], b: Optional[str]) -> bool:
    return canonical_identity(a) == canonical_identity(b)


def is_null_identity(identity: Optional[str]) -> bool:
    """True for None, blank strings, and the zero address (any case)."""
    canonical = canonical_identity(identity)
    return not canonical or canonical == ZERO_ADDRESS


def require_identity(identity: Optional[str], message: str) -> str:
    """Return the canonical identity, or raise InvalidClient."""
    if is_null_identity(identity):
        raise InvalidClient(message)
    return canonical_identity(identity)
