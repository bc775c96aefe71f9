"""Status models — AML assessment records and fee resolution policy.

A StatusRecord is keyed by (client, target). The client is the identity
that pays to read it; the target is an opaque label the assessment is
about (an address string, an account number, anything).

Invariants enforced at construction:
- c_score is an integer in [0, MAX_C_SCORE]
- aml_id is a byte string of at most AML_ID_SIZE bytes
- fee is None (unset) or a non-negative integer
- flags is a non-negative integer bitmask
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from amloracle.errors import InvalidAmount, InvalidAssessment, InvalidScore

MAX_C_SCORE = 99
AML_ID_SIZE = 32


class FeePolicy(str, enum.Enum):
    """When the registry-wide default fee replaces a record's own fee.

    UNSET_ONLY:    default applies only when the stored fee is None.
    ZERO_IS_UNSET: default also applies when the stored fee is 0.
    STORED_ONLY:   default is never used; an unset fee reads as 0.
    """
    UNSET_ONLY = "unset_only"
    ZERO_IS_UNSET = "zero_is_unset"
    STORED_ONLY = "stored_only"

    def resolve(self, stored_fee: Optional[int], default_fee: int) -> int:
        """Return the fee a fetch of this record must pay."""
        if self is FeePolicy.STORED_ONLY:
            return stored_fee or 0
        if stored_fee is None:
            return default_fee
        if self is FeePolicy.ZERO_IS_UNSET and stored_fee == 0:
            return default_fee
        return stored_fee


@dataclass(frozen=True)
class StatusRecord:
    """A single AML assessment about (client, target).

    Immutable — an operator write replaces the whole record.
    """
    client: str
    target: str
    aml_id: bytes
    c_score: int
    flags: int
    fee: Optional[int]
    timestamp: datetime

    def __post_init__(self) -> None:
        if isinstance(self.c_score, bool) or not isinstance(self.c_score, int):
            raise InvalidScore("The cScore must be an integer")
        if not 0 <= self.c_score <= MAX_C_SCORE:
            raise InvalidScore(f"The cScore must be between 0 and {MAX_C_SCORE}")
        if not isinstance(self.aml_id, (bytes, bytearray)):
            raise InvalidAssessment("AML ID must be a byte string")
        if len(self.aml_id) > AML_ID_SIZE:
            raise InvalidAssessment(
                f"AML ID must be at most {AML_ID_SIZE} bytes, got {len(self.aml_id)}"
            )
        if isinstance(self.flags, bool) or not isinstance(self.flags, int) or self.flags < 0:
            raise InvalidAssessment("Flags must be a non-negative integer bitmask")
        if self.fee is not None and (
            isinstance(self.fee, bool) or not isinstance(self.fee, int) or self.fee < 0
        ):
            raise InvalidAmount("Fee must be a non-negative integer or None")
        object.__setattr__(self, "aml_id", bytes(self.aml_id))

    @property
    def key(self) -> tuple[str, str]:
        return (self.client, self.target)

    def payload(self) -> tuple[bytes, int, int]:
        """The fetchable part of the record: (aml_id, c_score, flags)."""
        return (self.aml_id, self.c_score, self.flags)
