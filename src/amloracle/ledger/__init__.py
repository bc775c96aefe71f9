"""Ledger subsystem — custody boundary, escrow, fee settlement, recovery."""

from amloracle.ledger.custody import NATIVE_ASSET, AssetCustody, InMemoryAssetBook
from amloracle.ledger.escrow import EscrowLedger
from amloracle.ledger.recovery import StrayAssetRecovery
from amloracle.ledger.settlement import (
    FeeSettlement,
    PayAsYouGoSettlement,
    PrepaidSettlement,
    Settlement,
    SettlementSource,
)

__all__ = [
    "NATIVE_ASSET",
    "AssetCustody",
    "EscrowLedger",
    "FeeSettlement",
    "InMemoryAssetBook",
    "PayAsYouGoSettlement",
    "PrepaidSettlement",
    "Settlement",
    "SettlementSource",
    "StrayAssetRecovery",
]
