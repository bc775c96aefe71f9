"""Stray-asset recovery — returns assets sent to the registry by mistake.

Anyone can transfer an arbitrary asset to the registry's custody address
without going through deposit. Those balances belong to no escrow account
and would otherwise be stuck forever. Recovery sends them to the caller
(who must hold the recovery role; the service enforces that).

For the escrow denomination only the excess over the escrow total is
recoverable, so an administrator can never drain user funds:

    recoverable = held(asset) - (total_escrowed if asset == denomination else 0)
"""

from __future__ import annotations

from amloracle.errors import NothingToRecover
from amloracle.ledger.custody import AssetCustody
from amloracle.ledger.escrow import EscrowLedger
from amloracle.models.identity import same_identity


class StrayAssetRecovery:
    """Computes and transfers out recoverable stray balances."""

    def __init__(self, ledger: EscrowLedger, custody: AssetCustody) -> None:
        self._ledger = ledger
        self._custody = custody

    def recoverable(self, asset: str) -> int:
        held = self._custody.balance_of(asset, self._ledger.registry_address)
        if same_identity(asset, self._ledger.denomination):
            held -= self._ledger.total_escrowed()
        return max(held, 0)

    def recover(self, recipient: str, asset: str) -> int:
        """Transfer the recoverable amount of asset to recipient.

        Raises InvalidClient if recipient is the registry itself and
        NothingToRecover if there is nothing beyond escrowed funds.
        """
        recipient = self._ledger.require_external(
            recipient, "Cannot recover assets to the registry itself"
        )
        amount = self.recoverable(asset)
        if amount == 0:
            raise NothingToRecover("Must recover a positive amount", asset=asset)
        self._custody.transfer(asset, self._ledger.registry_address, recipient, amount)
        return amount
