"""Asset custody — the value-transfer boundary of the hosting substrate.

The registry never owns a ledger of external balances. It relies on the
substrate for "who holds how much of which asset" and for moving value
between holders. This module defines that boundary as a Protocol and
ships an in-memory implementation for tests, the CLI, and single-process
deployments.

Asset identifiers are opaque strings: NATIVE_ASSET for the substrate's
native currency, anything else for a token. Holders and hex-address
asset identifiers are keyed in canonical form.
"""

from __future__ import annotations

import copy
from typing import Any, Protocol, runtime_checkable

from amloracle.errors import InsufficientBalance, InvalidAmount, InvalidClient
from amloracle.models.identity import canonical_identity

NATIVE_ASSET = "native"


@runtime_checkable
class AssetCustody(Protocol):
    """Contract any value-transfer substrate must satisfy.

    snapshot()/restore() let the service roll the substrate back together
    with registry state when an operation fails part-way.
    """

    def balance_of(self, asset: str, holder: str) -> int:
        ...

    def transfer(self, asset: str, source: str, destination: str, amount: int) -> None:
        ...

    def snapshot(self) -> Any:
        ...

    def restore(self, state: Any) -> None:
        ...


class InMemoryAssetBook:
    """Dictionary-backed custody: asset -> holder -> balance.

    Usage:
        book = InMemoryAssetBook()
        book.mint(NATIVE_ASSET, "alice", 1_000)
        book.transfer(NATIVE_ASSET, "alice", "registry", 250)
    """

    def __init__(self) -> None:
        self._balances: dict[str, dict[str, int]] = {}

    def balance_of(self, asset: str, holder: str) -> int:
        holders = self._balances.get(canonical_identity(asset), {})
        return holders.get(canonical_identity(holder), 0)

    def mint(self, asset: str, holder: str, amount: int) -> None:
        """Create value out of thin air. Test and CLI funding only."""
        if amount <= 0:
            raise InvalidAmount("Amount to mint must be greater than 0")
        holders = self._balances.setdefault(canonical_identity(asset), {})
        holder = canonical_identity(holder)
        holders[holder] = holders.get(holder, 0) + amount

    def transfer(self, asset: str, source: str, destination: str, amount: int) -> None:
        """Move amount of asset from source to destination.

        A transfer from a holder to itself is rejected.
        """
        if amount < 0:
            raise InvalidAmount("Transfer amount must not be negative")
        if amount == 0:
            return
        asset = canonical_identity(asset)
        source = canonical_identity(source)
        destination = canonical_identity(destination)
        if source == destination:
            raise InvalidClient("Cannot transfer to the same holder", holder=source)
        available = self.balance_of(asset, source)
        if available < amount:
            raise InsufficientBalance(
                f"External balance of {asset} too low: {available} < {amount}",
                holder=source,
                asset=asset,
            )
        holders = self._balances.setdefault(asset, {})
        holders[source] = available - amount
        holders[destination] = holders.get(destination, 0) + amount

    def snapshot(self) -> dict[str, dict[str, int]]:
        return copy.deepcopy(self._balances)

    def restore(self, state: dict[str, dict[str, int]]) -> None:
        self._balances = copy.deepcopy(state)
