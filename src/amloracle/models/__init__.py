"""Core data models for the AML oracle registry."""

from amloracle.models.identity import (
    ZERO_ADDRESS,
    canonical_identity,
    is_null_identity,
    require_identity,
    same_identity,
)
from amloracle.models.status import AML_ID_SIZE, MAX_C_SCORE, FeePolicy, StatusRecord

__all__ = [
    "AML_ID_SIZE",
    "MAX_C_SCORE",
    "ZERO_ADDRESS",
    "FeePolicy",
    "StatusRecord",
    "canonical_identity",
    "is_null_identity",
    "require_identity",
    "same_identity",
]
