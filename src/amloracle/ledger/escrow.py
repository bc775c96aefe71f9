"""Escrow ledger — prepaid balances held by the registry on behalf of identities.

All balances are in one fungible unit, the registry's denomination
(native currency in one deployment, a designated token in the other).

Accounting invariant:
    sum(balances) <= custody.balance_of(denomination, registry_address)

The registry's own custody address is never an escrow party. A transfer
from custody to itself would credit an account without raising the held
balance.

Deposits and withdrawals move value across the custody boundary and adjust
exactly one account by the same amount. Fee charges are pure internal
transfers between two accounts. Neither can break the invariant, which is
what stray-asset recovery relies on to know what it must leave behind.

The ledger is a pure state holder with no audit side effects. Event
logging is handled by the service layer.
"""

from __future__ import annotations

from typing import Any

from amloracle.errors import InsufficientBalance, InvalidAmount, InvalidClient
from amloracle.ledger.custody import AssetCustody
from amloracle.models.identity import canonical_identity, require_identity, same_identity


def require_positive(amount: int, action: str) -> int:
    """Return amount if it is a positive integer, else raise InvalidAmount."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"Amount to {action} must be an integer")
    if amount <= 0:
        raise InvalidAmount(f"Amount to {action} must be greater than 0")
    return amount


class EscrowLedger:
    """Per-identity escrow balances backed by an AssetCustody.

    Usage:
        ledger = EscrowLedger(custody, "native", registry_address="0xRegistry")
        ledger.deposit("alice", "alice", 100)
        ledger.charge_fee("alice", "fees", 40)
        ledger.withdraw("alice", 60)
    """

    def __init__(
        self,
        custody: AssetCustody,
        denomination: str,
        registry_address: str,
    ) -> None:
        self._custody = custody
        self._denomination = denomination
        self._registry_address = registry_address
        self._balances: dict[str, int] = {}

    @property
    def denomination(self) -> str:
        return self._denomination

    @property
    def registry_address(self) -> str:
        return self._registry_address

    def balance_of(self, identity: str) -> int:
        return self._balances.get(canonical_identity(identity), 0)

    def total_escrowed(self) -> int:
        return sum(self._balances.values())

    def held_balance(self) -> int:
        """Denomination balance the registry actually holds in custody."""
        return self._custody.balance_of(self._denomination, self._registry_address)

    def accounts(self) -> dict[str, int]:
        return dict(self._balances)

    def deposit(self, payer: str, beneficiary: str, amount: int) -> int:
        """Pull amount from payer into custody and credit beneficiary.

        Returns the beneficiary's new balance.
        """
        require_positive(amount, "deposit")
        payer = self.require_external(payer, "The registry cannot deposit into escrow")
        beneficiary = require_identity(
            beneficiary, "Cannot deposit into the escrow of the null identity"
        )
        beneficiary = self.require_external(
            beneficiary, "Cannot deposit into the escrow of the registry itself"
        )
        self._custody.transfer(self._denomination, payer, self._registry_address, amount)
        return self._add(beneficiary, amount)

    def withdraw(self, identity: str, amount: int) -> int:
        """Debit identity and return amount to it. Returns the new balance."""
        require_positive(amount, "withdraw")
        identity = self.require_external(identity, "The registry cannot withdraw from escrow")
        remaining = self._debit(identity, amount)
        self._custody.transfer(self._denomination, self._registry_address, identity, amount)
        return remaining

    def charge_fee(self, payer: str, recipient: str, amount: int) -> None:
        """Move amount from payer's escrow to recipient's escrow.

        Internal only. No value crosses the custody boundary.
        """
        if amount < 0:
            raise InvalidAmount("Fee must not be negative")
        if amount == 0:
            return
        recipient = require_identity(recipient, "Fee recipient must not be the null identity")
        self._debit(canonical_identity(payer), amount)
        self._add(recipient, amount)

    def credit(self, identity: str, amount: int) -> int:
        """Credit escrow for value the caller has already moved into custody."""
        if amount < 0:
            raise InvalidAmount("Credit must not be negative")
        identity = require_identity(identity, "Cannot credit the null identity")
        return self._add(identity, amount)

    def require_external(self, identity: str, message: str) -> str:
        """Return the canonical identity, or raise InvalidClient if it is
        the registry's own custody address."""
        if same_identity(identity, self._registry_address):
            raise InvalidClient(message, identity=canonical_identity(identity))
        return canonical_identity(identity)

    def snapshot(self) -> dict[str, int]:
        return dict(self._balances)

    def restore(self, state: dict[str, Any]) -> None:
        self._balances = {canonical_identity(k): int(v) for k, v in state.items()}

    def _add(self, identity: str, amount: int) -> int:
        balance = self._balances.get(identity, 0) + amount
        self._balances[identity] = balance
        return balance

    def _debit(self, identity: str, amount: int) -> int:
        balance = self._balances.get(identity, 0)
        if balance < amount:
            raise InsufficientBalance(
                f"Escrow balance too low: {balance} < {amount}",
                identity=identity,
            )
        self._balances[identity] = balance - amount
        return balance - amount
