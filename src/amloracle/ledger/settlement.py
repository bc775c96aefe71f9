"""Fee settlement — pluggable strategies for paying fetch fees.

The status registry never moves value itself. It asks a FeeSettlement to
move the required fee from the payer to the fee account, and depends only
on this Protocol. Swapping strategies requires zero changes to fetch
logic.

Two strategies:
    PrepaidSettlement     fee drawn from the payer's escrow balance
    PayAsYouGoSettlement  fee pulled from the payer's external balance into
                          custody, credited to the fee account's escrow; the
                          payer's own escrow is never touched
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from amloracle.ledger.custody import AssetCustody
from amloracle.ledger.escrow import EscrowLedger


class SettlementSource(str, enum.Enum):
    """Where the payer's funds came from."""
    ESCROW = "escrow"
    EXTERNAL = "external"


@dataclass(frozen=True)
class Settlement:
    """Result of a successful fee settlement."""
    payer: str
    recipient: str
    amount: int
    source: SettlementSource


@runtime_checkable
class FeeSettlement(Protocol):
    """Moves a fee from payer to recipient, or raises a RegistryError."""

    @property
    def source(self) -> SettlementSource:
        ...

    def settle_fee(self, payer: str, recipient: str, amount: int) -> Settlement:
        ...


class PrepaidSettlement:
    """Draws fees from escrow deposited in advance."""

    def __init__(self, ledger: EscrowLedger) -> None:
        self._ledger = ledger

    @property
    def source(self) -> SettlementSource:
        return SettlementSource.ESCROW

    def settle_fee(self, payer: str, recipient: str, amount: int) -> Settlement:
        self._ledger.charge_fee(payer, recipient, amount)
        return Settlement(payer, recipient, amount, self.source)


class PayAsYouGoSettlement:
    """Pulls fees straight from the payer's external balance at fetch time."""

    def __init__(self, ledger: EscrowLedger, custody: AssetCustody) -> None:
        self._ledger = ledger
        self._custody = custody

    @property
    def source(self) -> SettlementSource:
        return SettlementSource.EXTERNAL

    def settle_fee(self, payer: str, recipient: str, amount: int) -> Settlement:
        payer = self._ledger.require_external(
            payer, "The registry cannot pay fees from its own custody"
        )
        if amount > 0:
            self._custody.transfer(
                self._ledger.denomination,
                payer,
                self._ledger.registry_address,
                amount,
            )
            self._ledger.credit(recipient, amount)
        return Settlement(payer, recipient, amount, self.source)
